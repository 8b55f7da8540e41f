"""
Form session engine: starts, updates, validates and navigates form sessions
"""
import logging
from typing import Any, Dict, List, Optional

from ..exceptions import Conflict, NotFound, SessionClosed, SubmissionPending, ValidationError
from ..models import (
    FieldIssue,
    FieldSource,
    FieldValidationResult,
    FormDefinition,
    FormField,
    FormSession,
    FormState,
    FormValidationResult,
    SessionStatus
)
from ..utils.validators import generate_session_id, validate_field
from .catalog_service import CatalogIndex
from .session_store import SessionStore

logger = logging.getLogger(__name__)

# Status a session moves to when a field value is accepted
STATUS_AFTER_EDIT = {
    SessionStatus.DRAFT: SessionStatus.IN_PROGRESS,
    SessionStatus.IN_PROGRESS: SessionStatus.IN_PROGRESS,
    SessionStatus.READY_FOR_REVIEW: SessionStatus.IN_PROGRESS,
}


def compute_progress(form: FormDefinition, session: FormSession) -> float:
    """
    Percentage of required fields that currently hold a valid value

    Derived on every call from the form definition and the session's
    values; a form without required fields is complete.
    """
    required = form.required_fields()
    if not required:
        return 100.0
    supplied = sum(1 for field in required if has_valid_value(session, field.field_id))
    return 100.0 * supplied / len(required)


def has_valid_value(session: FormSession, field_id: str) -> bool:
    if session.field_values.get(field_id) is None:
        return False
    outcome = session.validation.get(field_id)
    return outcome is not None and outcome.valid


def missing_required(form: FormDefinition, session: FormSession) -> List[str]:
    return [f.field_id for f in form.required_fields() if not has_valid_value(session, f.field_id)]


def apply_value(
    session: FormSession,
    field: FormField,
    result: FieldValidationResult,
    source: str,
    user_edit: bool
) -> FormSession:
    """
    Return a copy of `session` with an accepted field value applied

    The version is left alone; the store sets it on commit.
    """
    updated = session.model_copy(deep=True)
    if result.value is None:
        updated.field_values.pop(field.field_id, None)
    else:
        updated.field_values[field.field_id] = result.value
    updated.validation[field.field_id] = result
    updated.field_sources[field.field_id] = source
    if user_edit:
        updated.user_edited[field.field_id] = True
    updated.status = STATUS_AFTER_EDIT[session.status]
    return updated


def ensure_writable(session: FormSession, expected_version: Optional[int] = None) -> None:
    """Raise SessionClosed, SubmissionPending or Conflict if the session cannot take this mutation"""
    if not session.is_editable:
        raise SessionClosed(
            f"Session {session.session_id} is {session.status.value} and can no longer be changed"
        )
    if session.pending_submission_key is not None:
        raise SubmissionPending(
            f"Session {session.session_id} is being submitted and can no longer be changed"
        )
    if expected_version is not None and session.version != expected_version:
        raise Conflict(
            f"Session {session.session_id} is at version {session.version}, not {expected_version}",
            current_version=session.version
        )


class FormService:
    """Drives form sessions through the draft to ready_for_review part of their lifecycle"""

    def __init__(self, catalog: CatalogIndex, sessions: SessionStore):
        self.catalog = catalog
        self.sessions = sessions

    async def load_session(self, session_id: str) -> FormSession:
        session = await self.sessions.get(session_id)
        if session is None:
            raise NotFound(f"Session not found: {session_id}")
        return session

    def form_for(self, session: FormSession) -> FormDefinition:
        form = self.catalog.get_form(session.service_id, session.form_version)
        if form is None:
            raise NotFound(f"Form {session.service_id} v{session.form_version} is not in the catalog")
        return form

    def build_state(self, session: FormSession, form: Optional[FormDefinition] = None) -> FormState:
        form = form or self.form_for(session)
        current_step_id = None
        if 0 <= session.current_step_index < len(form.steps):
            current_step_id = form.steps[session.current_step_index].step_id
        return FormState(
            session=session,
            progress=compute_progress(form, session),
            current_step_id=current_step_id,
            total_steps=len(form.steps),
            missing_required=missing_required(form, session)
        )

    async def start_form(self, user_id: str, service_id: str, resume: bool = True) -> FormSession:
        """
        Start a form session, resuming the user's open one when present

        Args:
            user_id: Owner of the session
            service_id: Service whose form is being filled in
            resume: Return the user's open session for this service if one exists

        Returns:
            The new or resumed FormSession
        """
        if self.catalog.get_service(service_id) is None:
            raise NotFound(f"Service not found: {service_id}")
        form = self.catalog.get_form(service_id)
        if form is None:
            raise NotFound(f"Service {service_id} has no published form")

        if resume:
            existing = await self.sessions.find_open(user_id, service_id)
            if existing is not None:
                logger.info(f"Resuming session {existing.session_id} for user {user_id}")
                return existing

        session = FormSession(
            session_id=generate_session_id(),
            user_id=user_id,
            service_id=service_id,
            form_version=form.version
        )
        session = await self.sessions.create(session)
        logger.info(f"Started session {session.session_id} for user {user_id} on {service_id} v{form.version}")
        return session

    async def get_form_state(self, session_id: str) -> FormState:
        session = await self.load_session(session_id)
        return self.build_state(session)

    async def list_sessions(self, user_id: str) -> List[FormSession]:
        return await self.sessions.list_for_user(user_id)

    async def update_field(
        self,
        session_id: str,
        field_id: str,
        value: Any,
        expected_version: int
    ) -> FormSession:
        """
        Validate and store one field value

        Args:
            session_id: Session to update
            field_id: Form field id
            value: Raw value supplied by the user
            expected_version: Session version the caller last observed

        Returns:
            The committed session

        Raises:
            SessionClosed: the session was submitted or is being submitted
            Conflict: `expected_version` is stale
            ValidationError: the value was rejected; nothing was stored
        """
        session = await self.load_session(session_id)
        ensure_writable(session, expected_version)

        form = self.form_for(session)
        field = form.get_field(field_id)
        if field is None:
            raise NotFound(f"Form {session.service_id} v{session.form_version} has no field '{field_id}'")

        result = validate_field(field, value)
        if not result.valid:
            logger.info(f"Rejected value for {session_id}/{field_id}: {[e.code for e in result.errors]}")
            raise ValidationError(
                f"Invalid value for field '{field_id}'",
                field_errors={field_id: [e.model_dump() for e in result.errors]}
            )

        updated = apply_value(session, field, result, FieldSource.USER.value, user_edit=True)
        committed = await self.sessions.commit(updated, expected_version)
        logger.debug(f"Session {session_id} field {field_id} committed at version {committed.version}")
        return committed

    def validate_all(self, form: FormDefinition, session: FormSession) -> Dict[str, FieldValidationResult]:
        """Re-run field validation over every field of the form"""
        return {
            field.field_id: validate_field(field, session.field_values.get(field.field_id))
            for field in form.all_fields()
        }

    async def validate_form(self, session_id: str) -> FormValidationResult:
        """
        Validate the whole form; a passing draft/in-progress session becomes ready_for_review
        """
        session = await self.load_session(session_id)
        form = self.form_for(session)
        results = self.validate_all(form, session)

        field_errors: Dict[str, List[FieldIssue]] = {
            fid: list(r.errors) for fid, r in results.items() if not r.valid
        }
        warnings: Dict[str, List[FieldIssue]] = {
            fid: list(r.warnings) for fid, r in results.items() if r.warnings
        }
        valid = not field_errors

        target = None
        if valid and session.status in (SessionStatus.DRAFT, SessionStatus.IN_PROGRESS):
            target = SessionStatus.READY_FOR_REVIEW
        elif not valid and session.status == SessionStatus.READY_FOR_REVIEW:
            target = SessionStatus.IN_PROGRESS

        # a session locked for submission keeps its status
        if target is not None and session.pending_submission_key is None:
            updated = session.model_copy(deep=True)
            updated.status = target
            session = await self.sessions.commit(updated, session.version)
            logger.info(f"Session {session_id} moved to {target.value}")

        return FormValidationResult(
            session_id=session_id,
            valid=valid,
            status=session.status,
            version=session.version,
            progress=compute_progress(form, session),
            field_errors=field_errors,
            warnings=warnings,
            missing_required=missing_required(form, session)
        )

    async def go_to_step(self, session_id: str, step_index: int, expected_version: int) -> FormSession:
        """
        Move the session to another step

        Moving backwards is always allowed; moving forwards requires every
        required field on the steps being left behind to hold a valid value.
        """
        session = await self.load_session(session_id)
        ensure_writable(session, expected_version)
        form = self.form_for(session)

        if step_index >= len(form.steps):
            raise ValidationError(
                f"Step {step_index} does not exist",
                field_errors={"step_index": [
                    FieldIssue(code="invalid_step", message=f"Form has {len(form.steps)} steps").model_dump()
                ]}
            )

        if step_index > session.current_step_index:
            blocking: Dict[str, list] = {}
            for step in form.steps[session.current_step_index:step_index]:
                for field in step.fields:
                    if field.required and not has_valid_value(session, field.field_id):
                        blocking[field.field_id] = [
                            FieldIssue(code="required", message="This field is required").model_dump()
                        ]
            if blocking:
                raise ValidationError("Complete the current step before moving on", field_errors=blocking)

        if step_index == session.current_step_index:
            return session

        updated = session.model_copy(deep=True)
        updated.current_step_index = step_index
        return await self.sessions.commit(updated, expected_version)

    async def mirror_status(self, session_id: str, status: SessionStatus, max_attempts: int = 5) -> FormSession:
        """Copy a post-submission application status onto the owning session"""
        for _ in range(max_attempts):
            session = await self.load_session(session_id)
            if session.status == status:
                return session
            updated = session.model_copy(deep=True)
            updated.status = status
            try:
                return await self.sessions.commit(updated, session.version)
            except Conflict:
                logger.warning(f"Version conflict mirroring {status.value} onto session {session_id}; retrying")
        raise Conflict(f"Could not mirror status onto session {session_id}")
