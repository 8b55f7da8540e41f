"""
Catalog index of published service and form definitions
"""
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ConfigurationError
from ..models import FieldType, FormDefinition, ProfileSnapshot, ServiceDefinition
from ..rules_evaluator import RulesEvaluator

logger = logging.getLogger(__name__)

CHOICE_TYPES = {FieldType.SELECT, FieldType.MULTISELECT}


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable view of the catalog; replaced wholesale on publish"""
    catalog_version: int
    services: Tuple[ServiceDefinition, ...] = ()
    forms: Mapping[Tuple[str, int], FormDefinition] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "_by_id", {s.service_id: s for s in self.services})
        object.__setattr__(self, "_positions", {s.service_id: i for i, s in enumerate(self.services)})
        latest: Dict[str, int] = {}
        for service_id, version in self.forms:
            latest[service_id] = max(version, latest.get(service_id, 0))
        object.__setattr__(self, "_latest_form", latest)

    def get_service(self, service_id: str) -> Optional[ServiceDefinition]:
        return self._by_id.get(service_id)

    def position(self, service_id: str) -> int:
        """Catalog insertion order of a service"""
        return self._positions.get(service_id, len(self.services))

    def list_by_category(self, category: str) -> List[ServiceDefinition]:
        return [s for s in self.services if s.category == category]

    def get_form(self, service_id: str, version: Optional[int] = None) -> Optional[FormDefinition]:
        if version is None:
            version = self._latest_form.get(service_id)
            if version is None:
                return None
        return self.forms.get((service_id, version))


class CatalogIndex:
    """Read-mostly catalog; publication swaps in a new validated snapshot"""

    def __init__(self):
        self._snapshot = CatalogSnapshot(catalog_version=0)

    def snapshot(self) -> CatalogSnapshot:
        """Current snapshot; callers keep it for the duration of one operation"""
        return self._snapshot

    @property
    def catalog_version(self) -> int:
        return self._snapshot.catalog_version

    def get_service(self, service_id: str) -> Optional[ServiceDefinition]:
        return self._snapshot.get_service(service_id)

    def list_services(self) -> List[ServiceDefinition]:
        return list(self._snapshot.services)

    def list_by_category(self, category: str) -> List[ServiceDefinition]:
        return self._snapshot.list_by_category(category)

    def get_form(self, service_id: str, version: Optional[int] = None) -> Optional[FormDefinition]:
        return self._snapshot.get_form(service_id, version)

    def publish(
        self,
        services: Iterable[ServiceDefinition],
        forms: Iterable[FormDefinition] = ()
    ) -> CatalogSnapshot:
        """
        Validate and atomically publish a new catalog

        Args:
            services: Complete, ordered list of services; order is the ranking tie-break
            forms: Form definitions to add; earlier form versions remain resolvable

        Returns:
            The snapshot now being served

        Raises:
            ConfigurationError: if anything in the payload is malformed; the
                current snapshot stays in place
        """
        services = list(services)
        forms = list(forms)
        current = self._snapshot

        problems = self._check_services(services, current)
        problems.extend(self._check_forms(forms, services, current))
        if problems:
            for problem in problems:
                logger.error(f"Catalog rejected: {problem}")
            raise ConfigurationError(
                f"Catalog publication rejected with {len(problems)} problem(s)",
                problems=problems
            )

        merged_forms = dict(current.forms)
        for form in forms:
            merged_forms[(form.service_id, form.version)] = form

        snapshot = CatalogSnapshot(
            catalog_version=current.catalog_version + 1,
            services=tuple(services),
            forms=merged_forms
        )
        self._snapshot = snapshot
        logger.info(
            f"Published catalog version {snapshot.catalog_version}: "
            f"{len(services)} services, {len(forms)} new forms"
        )
        return snapshot

    def publish_payload(self, payload: Dict[str, Any]) -> CatalogSnapshot:
        """Parse a raw {'services': [...], 'forms': [...]} payload and publish it"""
        try:
            services = [ServiceDefinition(**item) for item in payload.get("services", [])]
            forms = [FormDefinition(**item) for item in payload.get("forms", [])]
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise ConfigurationError("Catalog payload failed to parse", problems=problems)
        return self.publish(services, forms)

    def load_file(self, path: str) -> CatalogSnapshot:
        """Load and publish a catalog JSON file"""
        catalog_file = Path(path)
        try:
            payload = json.loads(catalog_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read catalog file {path}: {e}")
        logger.info(f"Loading catalog from {catalog_file}")
        return self.publish_payload(payload)

    @staticmethod
    def _check_services(services: List[ServiceDefinition], current: CatalogSnapshot) -> List[str]:
        problems = []
        seen = set()
        for service in services:
            prefix = f"service '{service.service_id}'"
            if service.service_id in seen:
                problems.append(f"{prefix}: duplicate service id")
            seen.add(service.service_id)

            requirement_ids = set()
            for requirement in service.requirements:
                if requirement.requirement_id in requirement_ids:
                    problems.append(f"{prefix}: duplicate requirement id '{requirement.requirement_id}'")
                requirement_ids.add(requirement.requirement_id)
                problems.extend(f"{prefix}: {p}" for p in RulesEvaluator.check_requirement(requirement))

            published = current.get_service(service.service_id)
            if published is not None and published.version == service.version and published != service:
                problems.append(
                    f"{prefix}: version {service.version} is already published with different content"
                )
        return problems

    @staticmethod
    def _check_forms(
        forms: List[FormDefinition],
        services: List[ServiceDefinition],
        current: CatalogSnapshot
    ) -> List[str]:
        problems = []
        service_ids = {s.service_id for s in services}
        profile_fields = set(ProfileSnapshot.model_fields) - {"user_id"}
        seen = set()

        for form in forms:
            prefix = f"form '{form.service_id}' v{form.version}"
            key = (form.service_id, form.version)
            if key in seen:
                problems.append(f"{prefix}: published twice")
            seen.add(key)

            if form.service_id not in service_ids:
                problems.append(f"{prefix}: no such service in catalog")
            if not form.steps:
                problems.append(f"{prefix}: form has no steps")

            published = current.forms.get(key)
            if published is not None and published != form:
                problems.append(f"{prefix}: version is already published with different content")

            field_ids = set()
            for form_field in form.all_fields():
                field_prefix = f"{prefix} field '{form_field.field_id}'"
                if form_field.field_id in field_ids:
                    problems.append(f"{field_prefix}: duplicate field id")
                field_ids.add(form_field.field_id)

                if form_field.type in CHOICE_TYPES and not form_field.options:
                    problems.append(f"{field_prefix}: {form_field.type.value} field needs options")
                if form_field.profile_field and form_field.profile_field not in profile_fields:
                    problems.append(f"{field_prefix}: unknown profile field '{form_field.profile_field}'")

                rules = form_field.rules
                if rules.min_value is not None and rules.max_value is not None and rules.min_value > rules.max_value:
                    problems.append(f"{field_prefix}: min_value greater than max_value")
                if rules.min_length is not None and rules.max_length is not None and rules.min_length > rules.max_length:
                    problems.append(f"{field_prefix}: min_length greater than max_length")
                if not rules.allow_past_dates and not rules.allow_future_dates:
                    problems.append(f"{field_prefix}: neither past nor future dates allowed")
                if rules.pattern is not None:
                    try:
                        re.compile(rules.pattern)
                    except re.error as e:
                        problems.append(f"{field_prefix}: invalid pattern: {e}")
        return problems
