"""
Eligibility service for scoring and ranking services against a profile
"""
import logging
import time
from typing import List, Optional

from ..exceptions import ExternalUnavailable
from ..models import (
    EligibilityResult,
    ProfileSnapshot,
    SearchFilters,
    SearchResponse,
    ServiceDefinition,
    UnknownPolicy,
    Verdict
)
from ..rules_evaluator import RulesEvaluator
from .catalog_service import CatalogIndex, CatalogSnapshot

logger = logging.getLogger(__name__)

# Ineligible results stay strictly below a full score
MAX_INELIGIBLE_SCORE = 99.9


def _clamp(score: float, upper: float = 100.0) -> float:
    return max(0.0, min(upper, round(score, 1)))


def build_explanation(verdict: Verdict, matched: List[str], missing: List[str], unknown: List[str]) -> str:
    """Deterministic summary built only from the requirement lists"""
    parts = []
    if verdict == Verdict.ELIGIBLE:
        parts.append("Eligible.")
    else:
        parts.append("Not eligible.")
    if matched:
        parts.append(f"Meets: {', '.join(matched)}.")
    if missing:
        parts.append(f"Does not meet: {', '.join(missing)}.")
    if unknown:
        parts.append(f"Not enough information for: {', '.join(unknown)}.")
    return " ".join(parts)


class EligibilityService:
    """Scores services against profile snapshots and ranks the results"""

    def __init__(self, catalog: CatalogIndex, profile_provider=None):
        self.catalog = catalog
        self.profile_provider = profile_provider

    def score(self, service: ServiceDefinition, profile: ProfileSnapshot) -> EligibilityResult:
        """
        Score one service against a profile

        Args:
            service: Service definition to evaluate
            profile: Profile snapshot

        Returns:
            EligibilityResult with verdict, score and matched/missing requirements
        """
        matched: List[str] = []
        missing: List[str] = []
        unknown: List[str] = []
        labels = {}

        mandatory_total = 0
        mandatory_matched = 0
        optional_total = 0
        optional_matched = 0

        for requirement in service.requirements:
            labels[requirement.requirement_id] = requirement.label
            value = RulesEvaluator.get_profile_value(profile, requirement.condition.field)

            if (value is None and not requirement.mandatory
                    and requirement.unknown_policy == UnknownPolicy.NON_BLOCKING):
                unknown.append(requirement.requirement_id)
                continue

            passed = RulesEvaluator.evaluate(requirement.condition, value)
            if requirement.mandatory:
                mandatory_total += 1
                mandatory_matched += int(passed)
            else:
                optional_total += 1
                optional_matched += int(passed)

            if passed:
                matched.append(requirement.requirement_id)
            else:
                missing.append(requirement.requirement_id)

        if mandatory_matched < mandatory_total:
            verdict = Verdict.INELIGIBLE
            score = _clamp(100.0 * mandatory_matched / mandatory_total, MAX_INELIGIBLE_SCORE)
        else:
            verdict = Verdict.ELIGIBLE
            if optional_total == 0:
                score = 100.0
            else:
                score = _clamp(100.0 * optional_matched / optional_total)

        return EligibilityResult(
            service_id=service.service_id,
            service_version=service.version,
            category=service.category,
            verdict=verdict,
            score=score,
            matched=matched,
            missing=missing,
            unknown=unknown,
            explanation=build_explanation(
                verdict,
                [labels[r] for r in matched],
                [labels[r] for r in missing],
                [labels[r] for r in unknown]
            ),
            required_documents=[doc.document_type for doc in service.required_documents]
        )

    @staticmethod
    def rank(results: List[EligibilityResult], snapshot: CatalogSnapshot) -> List[EligibilityResult]:
        """Order by score descending; ties keep catalog insertion order"""
        return sorted(results, key=lambda r: (-r.score, snapshot.position(r.service_id)))

    def search_eligible_services(
        self,
        profile: ProfileSnapshot,
        filters: Optional[SearchFilters] = None
    ) -> SearchResponse:
        """
        Score and rank catalog services for a profile

        Args:
            profile: Profile snapshot
            filters: Optional category/service filters and the include_ineligible flag

        Returns:
            SearchResponse with ranked results
        """
        start_time = time.time()
        filters = filters or SearchFilters()
        snapshot = self.catalog.snapshot()

        if filters.category:
            candidates = snapshot.list_by_category(filters.category)
        else:
            candidates = list(snapshot.services)
        if filters.service_ids is not None:
            wanted = set(filters.service_ids)
            candidates = [s for s in candidates if s.service_id in wanted]

        results = [self.score(service, profile) for service in candidates]
        eligible_count = sum(1 for r in results if r.is_eligible)

        if not filters.include_ineligible:
            results = [r for r in results if r.is_eligible]
        results = [r for r in results if r.score >= filters.min_score]
        results = self.rank(results, snapshot)
        if filters.limit is not None:
            results = results[:filters.limit]

        processing_time = (time.time() - start_time) * 1000

        logger.info(
            f"Eligibility search against catalog v{snapshot.catalog_version}: "
            f"{eligible_count}/{len(candidates)} services eligible"
        )
        return SearchResponse(
            catalog_version=snapshot.catalog_version,
            total_services_checked=len(candidates),
            eligible_services=eligible_count,
            results=results,
            processing_time_ms=processing_time
        )

    async def search_for_user(self, user_id: str, filters: Optional[SearchFilters] = None) -> SearchResponse:
        """Fetch the user's profile snapshot from the profile provider and search"""
        if self.profile_provider is None:
            raise ExternalUnavailable("No profile provider configured", service="profile_provider")
        profile = await self.profile_provider.get_profile_snapshot(user_id)
        return self.search_eligible_services(profile, filters)
