"""
Session and application stores

Stores own persisted state. Session writes go through a version
compare-and-set so at most one mutation commits against any prior version;
application writes are keyed by the submission idempotency key.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from ..exceptions import Conflict, NotFound
from ..models import Application, FormSession, SessionStatus, StatusChange, EDITABLE_STATUSES

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Persistence interface for form sessions"""

    @abstractmethod
    async def create(self, session: FormSession) -> FormSession:
        """Persist a new session"""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[FormSession]:
        """Load a session by id"""

    @abstractmethod
    async def commit(self, session: FormSession, expected_version: int) -> FormSession:
        """
        Store `session` if the stored version still equals `expected_version`

        Returns:
            The stored session, with version expected_version + 1

        Raises:
            Conflict: the stored version moved on
            NotFound: no such session
        """

    @abstractmethod
    async def find_open(self, user_id: str, service_id: str) -> Optional[FormSession]:
        """Most recently updated editable session of a user for a service"""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[FormSession]:
        """All sessions of a user, most recently updated first"""


class ApplicationStore(ABC):
    """Persistence interface for submitted applications"""

    @abstractmethod
    async def create_if_absent(self, application: Application) -> Tuple[Application, bool]:
        """
        Insert an application unless one with the same idempotency key exists

        Returns:
            (stored application, created)
        """

    @abstractmethod
    async def get(self, application_id: str) -> Optional[Application]:
        """Load an application by id"""

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Application]:
        """Load an application by its idempotency key"""

    @abstractmethod
    async def get_by_session(self, session_id: str) -> Optional[Application]:
        """Load the application created from a session"""

    @abstractmethod
    async def append_status(
        self,
        application_id: str,
        change: StatusChange,
        expected_status: SessionStatus
    ) -> Application:
        """
        Append a status change if the application is still in `expected_status`

        Raises:
            Conflict: the status changed concurrently
            NotFound: no such application
        """


class InMemorySessionStore(SessionStore):
    """In-memory session store for development and tests.

    The lock covers only the compare-and-set itself; nothing holds it
    across an await on another service.
    """

    def __init__(self):
        self._sessions: Dict[str, FormSession] = {}
        self._lock = asyncio.Lock()

    async def create(self, session: FormSession) -> FormSession:
        async with self._lock:
            if session.session_id in self._sessions:
                raise Conflict(f"Session already exists: {session.session_id}")
            self._sessions[session.session_id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[FormSession]:
        stored = self._sessions.get(session_id)
        return stored.model_copy(deep=True) if stored else None

    async def commit(self, session: FormSession, expected_version: int) -> FormSession:
        async with self._lock:
            stored = self._sessions.get(session.session_id)
            if stored is None:
                raise NotFound(f"Session not found: {session.session_id}")
            if stored.version != expected_version:
                raise Conflict(
                    f"Session {session.session_id} is at version {stored.version}, "
                    f"not {expected_version}",
                    current_version=stored.version
                )
            committed = session.model_copy(
                update={"version": expected_version + 1, "updated_at": datetime.now(timezone.utc)},
                deep=True
            )
            self._sessions[session.session_id] = committed
        return committed.model_copy(deep=True)

    async def find_open(self, user_id: str, service_id: str) -> Optional[FormSession]:
        candidates = [
            s for s in self._sessions.values()
            if s.user_id == user_id and s.service_id == service_id and s.status in EDITABLE_STATUSES
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda s: s.updated_at)
        return latest.model_copy(deep=True)

    async def list_for_user(self, user_id: str) -> List[FormSession]:
        results = [s.model_copy(deep=True) for s in self._sessions.values() if s.user_id == user_id]
        results.sort(key=lambda s: s.updated_at, reverse=True)
        return results


class InMemoryApplicationStore(ApplicationStore):
    """In-memory application store for development and tests"""

    def __init__(self):
        self._applications: Dict[str, Application] = {}
        self._by_key: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create_if_absent(self, application: Application) -> Tuple[Application, bool]:
        async with self._lock:
            existing_id = self._by_key.get(application.idempotency_key)
            if existing_id is not None:
                return self._applications[existing_id], False
            self._applications[application.application_id] = application
            self._by_key[application.idempotency_key] = application.application_id
        return application, True

    async def get(self, application_id: str) -> Optional[Application]:
        return self._applications.get(application_id)

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Application]:
        application_id = self._by_key.get(idempotency_key)
        return self._applications.get(application_id) if application_id else None

    async def get_by_session(self, session_id: str) -> Optional[Application]:
        for application in self._applications.values():
            if application.session_id == session_id:
                return application
        return None

    async def append_status(
        self,
        application_id: str,
        change: StatusChange,
        expected_status: SessionStatus
    ) -> Application:
        async with self._lock:
            stored = self._applications.get(application_id)
            if stored is None:
                raise NotFound(f"Application not found: {application_id}")
            if stored.status != expected_status:
                raise Conflict(
                    f"Application {application_id} is {stored.status.value}, "
                    f"not {expected_status.value}"
                )
            updated = stored.model_copy(update={
                "status": change.status,
                "status_history": [*stored.status_history, change],
            })
            self._applications[application_id] = updated
        return updated
