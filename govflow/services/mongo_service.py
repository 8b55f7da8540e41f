"""
MongoDB-backed session and application stores
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..exceptions import Conflict, NotFound
from ..models import Application, FormSession, SessionStatus, StatusChange, EDITABLE_STATUSES
from .session_store import ApplicationStore, SessionStore

logger = logging.getLogger(__name__)


def _to_document(model) -> Dict[str, Any]:
    return model.model_dump(mode="json")


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc.pop("_id", None)
    return doc


class MongoSessionStore(SessionStore):
    """Sessions in the `form_sessions` collection; CAS via a version-filtered update"""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database.form_sessions

    async def create(self, session: FormSession) -> FormSession:
        try:
            await self.collection.insert_one(_to_document(session))
        except DuplicateKeyError:
            raise Conflict(f"Session already exists: {session.session_id}")
        logger.info(f"Session created: {session.session_id}")
        return session

    async def get(self, session_id: str) -> Optional[FormSession]:
        doc = await self.collection.find_one({"session_id": session_id})
        if doc:
            return FormSession(**_strip_id(doc))
        return None

    async def commit(self, session: FormSession, expected_version: int) -> FormSession:
        committed = session.model_copy(
            update={"version": expected_version + 1, "updated_at": datetime.now(timezone.utc)}
        )
        result = await self.collection.find_one_and_replace(
            {"session_id": session.session_id, "version": expected_version},
            _to_document(committed),
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            current = await self.collection.find_one({"session_id": session.session_id}, {"version": 1})
            if current is None:
                raise NotFound(f"Session not found: {session.session_id}")
            raise Conflict(
                f"Session {session.session_id} is at version {current['version']}, not {expected_version}",
                current_version=current["version"]
            )
        return FormSession(**_strip_id(result))

    async def find_open(self, user_id: str, service_id: str) -> Optional[FormSession]:
        doc = await self.collection.find_one(
            {
                "user_id": user_id,
                "service_id": service_id,
                "status": {"$in": [status.value for status in EDITABLE_STATUSES]},
            },
            sort=[("updated_at", DESCENDING)]
        )
        if doc:
            return FormSession(**_strip_id(doc))
        return None

    async def list_for_user(self, user_id: str) -> List[FormSession]:
        cursor = self.collection.find({"user_id": user_id}).sort("updated_at", DESCENDING)
        sessions = []
        async for doc in cursor:
            sessions.append(FormSession(**_strip_id(doc)))
        return sessions


class MongoApplicationStore(ApplicationStore):
    """Applications in the `applications` collection, unique on idempotency_key"""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.collection = database.applications

    async def create_if_absent(self, application: Application) -> Tuple[Application, bool]:
        try:
            await self.collection.insert_one(_to_document(application))
        except DuplicateKeyError:
            existing = await self.get_by_idempotency_key(application.idempotency_key)
            if existing is None:
                raise
            logger.info(f"Application already recorded for key {application.idempotency_key}")
            return existing, False
        logger.info(f"Application created: {application.application_id}")
        return application, True

    async def get(self, application_id: str) -> Optional[Application]:
        doc = await self.collection.find_one({"application_id": application_id})
        if doc:
            return Application(**_strip_id(doc))
        return None

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Application]:
        doc = await self.collection.find_one({"idempotency_key": idempotency_key})
        if doc:
            return Application(**_strip_id(doc))
        return None

    async def get_by_session(self, session_id: str) -> Optional[Application]:
        doc = await self.collection.find_one({"session_id": session_id})
        if doc:
            return Application(**_strip_id(doc))
        return None

    async def append_status(
        self,
        application_id: str,
        change: StatusChange,
        expected_status: SessionStatus
    ) -> Application:
        result = await self.collection.find_one_and_update(
            {"application_id": application_id, "status": expected_status.value},
            {
                "$set": {"status": change.status.value},
                "$push": {"status_history": _to_document(change)},
            },
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            if await self.collection.count_documents({"application_id": application_id}, limit=1) == 0:
                raise NotFound(f"Application not found: {application_id}")
            raise Conflict(f"Application {application_id} is no longer {expected_status.value}")
        return Application(**_strip_id(result))
