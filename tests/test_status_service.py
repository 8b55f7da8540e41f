"""Tests for applying government status events."""

import pytest

from govflow.exceptions import Conflict, InvalidTransition, NotFound
from govflow.models import SessionStatus, StatusEvent


@pytest.fixture
def submitted_application(form_service, coordinator, fill_valid_form):
    async def _submit():
        session = await form_service.start_form("user-1", "housing_assistance")
        await fill_valid_form(session.session_id)
        await form_service.validate_form(session.session_id)
        result = await coordinator.submit(session.session_id)
        return result.application

    return _submit


class TestApplyStatusEvent:
    """Transition table, idempotence and session mirroring."""

    async def test_transition_appends_history_and_mirrors_session(
        self, status_service, form_service, submitted_application
    ):
        application = await submitted_application()

        updated = await status_service.apply_status_event(StatusEvent(
            application_id=application.application_id,
            new_status=SessionStatus.UNDER_REVIEW,
            reason="Assigned to caseworker",
        ))

        assert updated.status == SessionStatus.UNDER_REVIEW
        assert [c.status for c in updated.status_history] == [SessionStatus.SUBMITTED, SessionStatus.UNDER_REVIEW]
        assert updated.status_history[-1].reason == "Assigned to caseworker"
        session = await form_service.load_session(application.session_id)
        assert session.status == SessionStatus.UNDER_REVIEW

    async def test_repeated_status_is_a_no_op(self, status_service, submitted_application):
        application = await submitted_application()
        event = StatusEvent(application_id=application.application_id, new_status=SessionStatus.REQUIRES_ACTION)

        first = await status_service.apply_status_event(event)
        second = await status_service.apply_status_event(event)

        assert len(second.status_history) == len(first.status_history) == 2

    async def test_redelivered_event_completes_failed_mirror(
        self, status_service, form_service, submitted_application
    ):
        application = await submitted_application()
        event = StatusEvent(application_id=application.application_id, new_status=SessionStatus.UNDER_REVIEW)

        async def failing_mirror(session_id, status, max_attempts=5):
            raise Conflict(f"Could not mirror status onto session {session_id}")

        form_service.mirror_status = failing_mirror
        with pytest.raises(Conflict):
            await status_service.apply_status_event(event)
        del form_service.mirror_status

        stale = await form_service.load_session(application.session_id)
        assert stale.status == SessionStatus.SUBMITTED

        redelivered = await status_service.apply_status_event(event)

        assert len(redelivered.status_history) == 2
        session = await form_service.load_session(application.session_id)
        assert session.status == SessionStatus.UNDER_REVIEW

    async def test_terminal_status_accepts_nothing(self, status_service, submitted_application):
        application = await submitted_application()
        await status_service.apply_status_event(StatusEvent(
            application_id=application.application_id, new_status=SessionStatus.APPROVED
        ))

        with pytest.raises(InvalidTransition):
            await status_service.apply_status_event(StatusEvent(
                application_id=application.application_id, new_status=SessionStatus.UNDER_REVIEW
            ))

    async def test_cannot_move_back_to_editable_status(self, status_service, submitted_application):
        application = await submitted_application()
        with pytest.raises(InvalidTransition):
            await status_service.apply_status_event(StatusEvent(
                application_id=application.application_id, new_status=SessionStatus.IN_PROGRESS
            ))

    async def test_unknown_application(self, status_service):
        with pytest.raises(NotFound):
            await status_service.apply_status_event(StatusEvent(
                application_id="missing", new_status=SessionStatus.APPROVED
            ))
