"""
Submission coordinator: turns a reviewed session into an application exactly once
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..exceptions import Conflict, ExternalTimeout, SessionClosed, SessionNotReady, ValidationError
from ..models import (
    Application,
    FieldType,
    FormDefinition,
    FormSession,
    SessionStatus,
    StatusChange,
    SubmissionResult
)
from ..utils.validators import build_idempotency_key, compute_content_hash
from .form_service import FormService
from .session_store import ApplicationStore

logger = logging.getLogger(__name__)


def collect_document_ids(form: FormDefinition, session: FormSession) -> List[str]:
    """Document fields' values followed by documents attached through auto-fill"""
    document_ids = []
    for field in form.all_fields():
        if field.type == FieldType.DOCUMENT:
            value = session.field_values.get(field.field_id)
            if value and value not in document_ids:
                document_ids.append(value)
    for document_id in session.attached_documents:
        if document_id not in document_ids:
            document_ids.append(document_id)
    return document_ids


class SubmissionCoordinator:
    """Submits sessions to the government API, idempotent on (session id, content hash)"""

    def __init__(
        self,
        form_service: FormService,
        applications: ApplicationStore,
        government_client,
        default_timeout: Optional[float] = None
    ):
        self.forms = form_service
        self.applications = applications
        self.government_client = government_client
        self.default_timeout = default_timeout

    def _build_application(self, session: FormSession, form: FormDefinition, content_hash: str) -> Application:
        idempotency_key, application_id = build_idempotency_key(session.session_id, content_hash)
        return Application(
            application_id=application_id,
            session_id=session.session_id,
            user_id=session.user_id,
            service_id=session.service_id,
            form_version=session.form_version,
            idempotency_key=idempotency_key,
            content_hash=content_hash,
            frozen_fields=dict(session.field_values),
            document_ids=collect_document_ids(form, session),
            status=SessionStatus.SUBMITTED,
            status_history=[StatusChange(status=SessionStatus.SUBMITTED, reason="Submitted by applicant")]
        )

    async def _hand_off(self, application: Application, timeout: Optional[float]) -> Application:
        """Send the application to the government API and attach its confirmation number"""
        try:
            receipt = await asyncio.wait_for(self.government_client.submit(application), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Government API timed out for application {application.application_id}")
            raise ExternalTimeout("Government API did not respond in time", service="government_api")
        return application.model_copy(update={"confirmation_number": receipt.confirmation_number})

    async def _reserve(self, session: FormSession, idempotency_key: str, application_id: str) -> FormSession:
        """
        Lock the session for submission by committing the pending idempotency key

        A concurrent submit that already reserved the same key wins the race;
        its reservation, or the session it went on to finalize, is returned
        instead so both callers end up with the same application.
        """
        reserved = session.model_copy(deep=True)
        reserved.pending_submission_key = idempotency_key
        try:
            return await self.forms.sessions.commit(reserved, session.version)
        except Conflict:
            current = await self.forms.load_session(session.session_id)
            if current.pending_submission_key == idempotency_key or (
                not current.is_editable and current.application_id == application_id
            ):
                logger.info(f"Session {session.session_id} already reserved by a concurrent submission")
                return current
            logger.warning(f"Session {session.session_id} changed before it could be reserved for submission")
            raise

    async def submit(self, session_id: str, timeout: Optional[float] = None) -> SubmissionResult:
        """
        Submit a session

        The session is first locked with its idempotency key, so no edit can
        land between the hand-off and the session being closed. A repeated call
        for a submitted session with unchanged content returns the original
        application. A failed hand-off leaves the session locked in
        ready_for_review; calling submit again retries with the same key, which
        the government API deduplicates.

        Raises:
            SessionNotReady: the session has not passed full-form validation
            SessionClosed: the session was submitted with different content
            ExternalUnavailable / ExternalTimeout: hand-off failed; retry is safe
        """
        timeout = timeout or self.default_timeout
        session = await self.forms.load_session(session_id)
        form = self.forms.form_for(session)
        content_hash = compute_content_hash(session.field_values)

        if not session.is_editable:
            return await self._resubmission(session, form, content_hash, timeout)

        if session.status != SessionStatus.READY_FOR_REVIEW:
            raise SessionNotReady(
                f"Session {session_id} is {session.status.value}; validate the form before submitting"
            )

        application = self._build_application(session, form, content_hash)
        if session.pending_submission_key is None:
            results = self.forms.validate_all(form, session)
            field_errors = {fid: [e.model_dump() for e in r.errors] for fid, r in results.items() if not r.valid}
            if field_errors:
                raise ValidationError(f"Session {session_id} no longer passes validation", field_errors=field_errors)
            session = await self._reserve(session, application.idempotency_key, application.application_id)
            if not session.is_editable:
                return await self._resubmission(session, form, content_hash, timeout)
        elif session.pending_submission_key != application.idempotency_key:
            raise Conflict(
                f"Session {session_id} is reserved under a different submission key",
                current_version=session.version
            )
        else:
            logger.info(f"Retrying pending hand-off for session {session_id}")

        logger.info(f"Submitting session {session_id} as application {application.application_id}")
        application = await self._hand_off(application, timeout)

        finalized = session.model_copy(deep=True)
        finalized.status = SessionStatus.SUBMITTED
        finalized.submitted_at = datetime.now(timezone.utc)
        finalized.application_id = application.application_id
        finalized.pending_submission_key = None
        try:
            await self.forms.sessions.commit(finalized, session.version)
        except Conflict:
            current = await self.forms.load_session(session_id)
            if current.application_id != application.application_id:
                logger.warning(f"Session {session_id} changed during submission; not finalizing")
                raise
            logger.info(f"Session {session_id} was finalized by a concurrent submission")

        stored, created = await self.applications.create_if_absent(application)
        return SubmissionResult(application=stored, duplicate=not created)

    async def _resubmission(
        self,
        session: FormSession,
        form: FormDefinition,
        content_hash: str,
        timeout: Optional[float]
    ) -> SubmissionResult:
        idempotency_key, application_id = build_idempotency_key(session.session_id, content_hash)
        if session.application_id != application_id:
            raise SessionClosed(
                f"Session {session.session_id} was already submitted with different content"
            )

        existing = await self.applications.get(application_id)
        if existing is not None:
            logger.info(f"Duplicate submission of session {session.session_id}; returning {application_id}")
            return SubmissionResult(application=existing, duplicate=True)

        # Session was finalized but the application record was never written
        logger.warning(f"Recovering missing application record {application_id}")
        application = self._build_application(session, form, content_hash)
        application = await self._hand_off(application, timeout)
        stored, created = await self.applications.create_if_absent(application)
        return SubmissionResult(application=stored, duplicate=not created)
