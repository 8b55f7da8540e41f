"""
Auto-fill merger: applies profile or document-extracted values to a session
without overwriting anything the user entered
"""
import asyncio
import logging
from typing import Dict, Optional, Tuple

from ..exceptions import Conflict, ExternalTimeout, ExternalUnavailable, ValidationError
from ..models import (
    AutoFillResult,
    AutoFillSource,
    CandidateValue,
    FieldSource,
    FormDefinition,
    FormSession,
    MergeReport
)
from ..utils.validators import validate_field
from .form_service import FormService, apply_value, ensure_writable

logger = logging.getLogger(__name__)


def merge(
    session: FormSession,
    form: FormDefinition,
    candidates: Dict[str, CandidateValue],
    source: str,
    min_confidence: float = 0.0
) -> Tuple[FormSession, MergeReport]:
    """
    Merge candidate values into a copy of the session

    A candidate is applied only if the user never set the field in this
    session, its confidence reaches `min_confidence` and it passes the same
    validation as a direct update.

    Returns:
        (updated session copy, report); the copy is uncommitted
    """
    report = MergeReport(source=source)
    updated = session

    for field_id in sorted(candidates):
        candidate = candidates[field_id]
        field = form.get_field(field_id)
        if field is None:
            report.unknown_fields.append(field_id)
            continue
        if session.was_user_edited(field_id):
            report.skipped_user_edited.append(field_id)
            continue
        if candidate.confidence < min_confidence:
            report.low_confidence.append(field_id)
            continue

        result = validate_field(field, candidate.value)
        if not result.valid or result.value is None:
            report.rejected[field_id] = list(result.errors)
            continue
        if (updated.field_values.get(field_id) == result.value
                and updated.field_sources.get(field_id) == source):
            continue

        updated = apply_value(updated, field, result, source, user_edit=False)
        report.applied.append(field_id)

    return updated, report


class AutoFillService:
    """Fetches candidates from a collaborator and merges them under version control"""

    def __init__(
        self,
        form_service: FormService,
        extraction_client=None,
        profile_client=None,
        min_confidence: float = 0.0,
        max_retries: int = 3,
        default_timeout: Optional[float] = None
    ):
        self.forms = form_service
        self.extraction_client = extraction_client
        self.profile_client = profile_client
        self.min_confidence = min_confidence
        self.max_retries = max_retries
        self.default_timeout = default_timeout

    async def _fetch_candidates(
        self,
        session: FormSession,
        form: FormDefinition,
        source: AutoFillSource
    ) -> Dict[str, CandidateValue]:
        if source.kind == FieldSource.DOCUMENT:
            return await self.extraction_client.get_extracted_fields(source.document_id)

        profile = await self.profile_client.get_profile_snapshot(session.user_id)
        candidates = {}
        for field in form.all_fields():
            if field.profile_field is None:
                continue
            value = getattr(profile, field.profile_field, None)
            if value is not None:
                candidates[field.field_id] = CandidateValue(value=value, confidence=1.0)
        return candidates

    def _check_source(self, source: AutoFillSource) -> None:
        if source.kind == FieldSource.DOCUMENT:
            if not source.document_id:
                raise ValidationError(
                    "Document auto-fill needs a document id",
                    field_errors={"document_id": [{"code": "required", "message": "This field is required"}]}
                )
            if self.extraction_client is None:
                raise ExternalUnavailable("No document extraction client configured", service="document_extraction")
        elif source.kind == FieldSource.PROFILE:
            if self.profile_client is None:
                raise ExternalUnavailable("No profile client configured", service="profile_provider")
        else:
            raise ValidationError(
                f"Unsupported auto-fill source '{source.kind.value}'",
                field_errors={"kind": [{"code": "invalid_option", "message": "Must be one of: profile, document"}]}
            )

    async def auto_fill(self, session_id: str, source: AutoFillSource) -> AutoFillResult:
        """
        Fill untouched fields of a session from a profile or document

        The collaborator call finishes (or times out) before anything is
        applied, so a timeout or cancellation leaves the session as it was.
        All applied fields commit together as one version increment; on a
        version conflict the merge is recomputed against the reloaded session.

        Raises:
            SessionClosed: the session was submitted
            ExternalTimeout / ExternalUnavailable: the collaborator failed
            Conflict: retries were exhausted by concurrent writers
        """
        self._check_source(source)
        session = await self.forms.load_session(session_id)
        ensure_writable(session)
        form = self.forms.form_for(session)

        timeout = source.timeout_seconds or self.default_timeout
        try:
            candidates = await asyncio.wait_for(self._fetch_candidates(session, form, source), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Auto-fill from {source.label} timed out for session {session_id}")
            raise ExternalTimeout(
                f"Auto-fill source {source.label} did not respond in time",
                service="document_extraction" if source.kind == FieldSource.DOCUMENT else "profile_provider"
            )

        for attempt in range(1, self.max_retries + 1):
            merged, report = merge(session, form, candidates, source.label, self.min_confidence)

            if source.kind == FieldSource.DOCUMENT and source.document_id not in merged.attached_documents:
                if merged is session:
                    merged = session.model_copy(deep=True)
                merged.attached_documents.append(source.document_id)

            if merged is session:
                logger.info(f"Auto-fill from {source.label} changed nothing on session {session_id}")
                return AutoFillResult(session=session, report=report)

            try:
                committed = await self.forms.sessions.commit(merged, session.version)
            except Conflict:
                logger.warning(
                    f"Auto-fill conflict on session {session_id} (attempt {attempt}/{self.max_retries})"
                )
                session = await self.forms.load_session(session_id)
                ensure_writable(session)
                continue

            logger.info(
                f"Auto-filled {len(report.applied)} field(s) on session {session_id} from {source.label}; "
                f"skipped {len(report.skipped_user_edited)} user-edited"
            )
            return AutoFillResult(session=committed, report=report)

        raise Conflict(f"Auto-fill gave up after {self.max_retries} conflicting writes on session {session_id}")
