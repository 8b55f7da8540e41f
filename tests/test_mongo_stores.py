"""Tests for the MongoDB stores against a live server.

Skipped when no MongoDB answers at TEST_MONGODB_URL (default: MONGODB_URL).
"""

import os
from uuid import uuid4

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from govflow.config import settings
from govflow.database import create_indexes
from govflow.exceptions import Conflict, NotFound
from govflow.models import Application, FormSession, SessionStatus, StatusChange
from govflow.services.mongo_service import MongoApplicationStore, MongoSessionStore


def make_session(session_id: str = "s-1") -> FormSession:
    return FormSession(session_id=session_id, user_id="user-1", service_id="housing_assistance", form_version=1)


def make_application(application_id: str = "app-1", idempotency_key: str = "s-1:abc") -> Application:
    return Application(
        application_id=application_id,
        session_id="s-1",
        user_id="user-1",
        service_id="housing_assistance",
        form_version=1,
        idempotency_key=idempotency_key,
        content_hash="abc",
        frozen_fields={"full_name": "Dana Smith"},
        status_history=[StatusChange(status=SessionStatus.SUBMITTED)],
    )


@pytest_asyncio.fixture
async def mongo_database():
    """Throwaway database with the production indexes; dropped afterwards."""
    url = os.environ.get("TEST_MONGODB_URL", settings.mongodb_url)
    client = AsyncIOMotorClient(url, serverSelectionTimeoutMS=500)
    try:
        await client.admin.command("ping")
    except PyMongoError:
        client.close()
        pytest.skip(f"MongoDB not available at {url}")

    name = f"govflow_test_{uuid4().hex[:12]}"
    database = client[name]
    await create_indexes(database)

    yield database

    await client.drop_database(name)
    client.close()


@pytest.fixture
def mongo_sessions(mongo_database) -> MongoSessionStore:
    return MongoSessionStore(mongo_database)


@pytest.fixture
def mongo_applications(mongo_database) -> MongoApplicationStore:
    return MongoApplicationStore(mongo_database)


class TestMongoSessionStore:
    """Version-filtered replace semantics."""

    async def test_commit_increments_version(self, mongo_sessions):
        session = await mongo_sessions.create(make_session())
        updated = session.model_copy(update={"field_values": {"full_name": "Dana Smith"}})

        committed = await mongo_sessions.commit(updated, 0)

        assert committed.version == 1
        stored = await mongo_sessions.get(session.session_id)
        assert stored.field_values == {"full_name": "Dana Smith"}
        assert stored.version == 1

    async def test_stale_version_reports_current_version(self, mongo_sessions):
        session = await mongo_sessions.create(make_session())
        await mongo_sessions.commit(session, 0)

        with pytest.raises(Conflict) as exc_info:
            await mongo_sessions.commit(session.model_copy(update={"current_step_index": 1}), 0)

        assert exc_info.value.current_version == 1
        assert (await mongo_sessions.get(session.session_id)).current_step_index == 0

    async def test_commit_of_unknown_session_is_not_found(self, mongo_sessions):
        with pytest.raises(NotFound):
            await mongo_sessions.commit(make_session("missing"), 0)

    async def test_duplicate_create_conflicts(self, mongo_sessions):
        await mongo_sessions.create(make_session())
        with pytest.raises(Conflict):
            await mongo_sessions.create(make_session())

    async def test_pending_submission_key_is_persisted(self, mongo_sessions):
        session = await mongo_sessions.create(make_session())
        locked = session.model_copy(update={"pending_submission_key": "s-1:abc"})

        await mongo_sessions.commit(locked, 0)

        assert (await mongo_sessions.get("s-1")).pending_submission_key == "s-1:abc"

    async def test_find_open_skips_submitted_sessions(self, mongo_sessions):
        submitted = await mongo_sessions.create(make_session("s-old"))
        await mongo_sessions.commit(submitted.model_copy(update={"status": SessionStatus.SUBMITTED}), 0)
        await mongo_sessions.create(make_session("s-new"))

        found = await mongo_sessions.find_open("user-1", "housing_assistance")

        assert found.session_id == "s-new"
        assert [s.session_id for s in await mongo_sessions.list_for_user("user-1")] == ["s-new", "s-old"]


class TestMongoApplicationStore:
    """Unique idempotency key and status-filtered history appends."""

    async def test_duplicate_key_returns_existing_record(self, mongo_applications, mongo_database):
        first, created = await mongo_applications.create_if_absent(make_application())
        again, created_again = await mongo_applications.create_if_absent(make_application())

        assert created
        assert not created_again
        assert again.application_id == first.application_id
        assert await mongo_database.applications.count_documents({}) == 1

    async def test_same_key_under_another_id_returns_original(self, mongo_applications):
        await mongo_applications.create_if_absent(make_application())

        existing, created = await mongo_applications.create_if_absent(make_application(application_id="app-2"))

        assert not created
        assert existing.application_id == "app-1"
        assert await mongo_applications.get("app-2") is None

    async def test_append_status_pushes_history(self, mongo_applications):
        await mongo_applications.create_if_absent(make_application())

        updated = await mongo_applications.append_status(
            "app-1", StatusChange(status=SessionStatus.UNDER_REVIEW), expected_status=SessionStatus.SUBMITTED
        )

        assert updated.status == SessionStatus.UNDER_REVIEW
        assert [c.status for c in updated.status_history] == [SessionStatus.SUBMITTED, SessionStatus.UNDER_REVIEW]
        assert (await mongo_applications.get_by_session("s-1")).status == SessionStatus.UNDER_REVIEW

    async def test_append_status_from_wrong_status_conflicts(self, mongo_applications):
        await mongo_applications.create_if_absent(make_application())

        with pytest.raises(Conflict):
            await mongo_applications.append_status(
                "app-1", StatusChange(status=SessionStatus.APPROVED), expected_status=SessionStatus.UNDER_REVIEW
            )

        assert len((await mongo_applications.get("app-1")).status_history) == 1

    async def test_append_status_of_unknown_application_is_not_found(self, mongo_applications):
        with pytest.raises(NotFound):
            await mongo_applications.append_status(
                "missing", StatusChange(status=SessionStatus.APPROVED), expected_status=SessionStatus.SUBMITTED
            )
