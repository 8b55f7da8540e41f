"""
Status feed consumer: applies government status events to applications
"""
import logging

from ..exceptions import InvalidTransition, NotFound
from ..models import APPLICATION_TRANSITIONS, TERMINAL_STATUSES, Application, StatusChange, StatusEvent
from .form_service import FormService
from .session_store import ApplicationStore

logger = logging.getLogger(__name__)


class StatusService:
    """Moves applications (and their sessions) through post-submission statuses"""

    def __init__(self, form_service: FormService, applications: ApplicationStore):
        self.forms = form_service
        self.applications = applications

    async def get_application(self, application_id: str) -> Application:
        application = await self.applications.get(application_id)
        if application is None:
            raise NotFound(f"Application not found: {application_id}")
        return application

    async def apply_status_event(self, event: StatusEvent) -> Application:
        """
        Apply one status event

        Repeating the current status leaves the history alone but still
        mirrors it onto the session, so a redelivered event completes a
        mirror that failed the first time. The status history only ever grows.

        Raises:
            NotFound: unknown application
            InvalidTransition: the event's status is not reachable from the current one
            Conflict: another event changed the status concurrently; redeliver
        """
        application = await self.get_application(event.application_id)

        if event.new_status == application.status:
            logger.info(f"Ignoring repeated {event.new_status.value} event for {application.application_id}")
            await self.forms.mirror_status(application.session_id, application.status)
            return application

        if application.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Application {application.application_id} is {application.status.value} and accepts no further events"
            )

        allowed = APPLICATION_TRANSITIONS.get(application.status, frozenset())
        if event.new_status not in allowed:
            raise InvalidTransition(
                f"Application {application.application_id} cannot move from "
                f"{application.status.value} to {event.new_status.value}"
            )

        updated = await self.applications.append_status(
            application.application_id,
            StatusChange(status=event.new_status, reason=event.reason),
            expected_status=application.status
        )
        await self.forms.mirror_status(updated.session_id, updated.status)
        logger.info(
            f"Application {updated.application_id} moved "
            f"{application.status.value} -> {updated.status.value}"
        )
        return updated
