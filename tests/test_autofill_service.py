"""Tests for the auto-fill merger and its commit loop."""

import pytest

from govflow.exceptions import Conflict, ExternalTimeout, SessionClosed, SubmissionPending, ValidationError
from govflow.models import AutoFillSource, CandidateValue, FieldSource, SessionStatus
from govflow.services import AutoFillService, merge

from .conftest import FakeExtractionClient, housing_form


class TestMerge:
    """The pure merge function."""

    async def test_user_edits_are_never_overwritten(self, form_service):
        session = await form_service.start_form("user-1", "housing_assistance")
        session = await form_service.update_field(session.session_id, "full_name", "Dana Smith", 0)

        merged, report = merge(
            session,
            housing_form(),
            {"full_name": CandidateValue(value="D. Smith"), "age": CandidateValue(value=34)},
            "document:doc-9",
        )

        assert merged.field_values["full_name"] == "Dana Smith"
        assert merged.field_values["age"] == 34
        assert report.skipped_user_edited == ["full_name"]
        assert report.applied == ["age"]
        assert merged.field_sources["age"] == "document:doc-9"
        assert not merged.was_user_edited("age")

    async def test_invalid_and_unknown_candidates_are_reported(self, form_service):
        session = await form_service.start_form("user-1", "housing_assistance")
        merged, report = merge(
            session,
            housing_form(),
            {"age": CandidateValue(value=7), "pet_name": CandidateValue(value="Rex")},
            "profile",
        )

        assert merged is session
        assert report.unknown_fields == ["pet_name"]
        assert report.rejected["age"][0].code == "below_minimum"

    async def test_low_confidence_candidates_are_ignored(self, form_service):
        session = await form_service.start_form("user-1", "housing_assistance")
        _, report = merge(
            session, housing_form(), {"age": CandidateValue(value=34, confidence=0.2)}, "profile", 0.6
        )
        assert report.low_confidence == ["age"]
        assert report.applied == []


class TestAutoFill:
    """Fetch, merge and commit."""

    async def test_document_fill_commits_once(self, form_service, autofill_service):
        session = await form_service.start_form("user-1", "housing_assistance")

        result = await autofill_service.auto_fill(
            session.session_id, AutoFillSource(kind=FieldSource.DOCUMENT, document_id="doc-1")
        )

        assert result.session.version == 1
        assert result.session.status == SessionStatus.IN_PROGRESS
        assert result.session.field_values["full_name"] == "Dana Smith"
        assert result.session.field_values["annual_income"] == 24500
        assert result.session.attached_documents == ["doc-1"]
        assert result.report.applied == ["annual_income", "full_name"]
        assert result.report.low_confidence == ["housing_type"]
        assert result.report.unknown_fields == ["favourite_colour"]

    async def test_profile_fill_uses_mapped_fields(self, form_service, autofill_service):
        session = await form_service.start_form("user-1", "housing_assistance")
        session = await form_service.update_field(session.session_id, "age", 40, 0)

        result = await autofill_service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.PROFILE))

        assert result.session.field_values["age"] == 40
        assert result.session.field_values["annual_income"] == 24000
        assert result.report.skipped_user_edited == ["age"]

    async def test_timeout_leaves_session_unchanged(self, form_service, profile_client):
        service = AutoFillService(
            form_service,
            extraction_client=FakeExtractionClient({"doc-1": {"age": CandidateValue(value=30)}}, delay=0.5),
            profile_client=profile_client,
            default_timeout=0.05,
        )
        session = await form_service.start_form("user-1", "housing_assistance")

        with pytest.raises(ExternalTimeout):
            await service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.DOCUMENT, document_id="doc-1"))

        loaded = await form_service.load_session(session.session_id)
        assert loaded.version == 0
        assert loaded.field_values == {}

    async def test_document_source_needs_an_id(self, form_service, autofill_service):
        session = await form_service.start_form("user-1", "housing_assistance")
        with pytest.raises(ValidationError):
            await autofill_service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.DOCUMENT))

    async def test_closed_session_is_rejected(self, form_service, autofill_service, session_store):
        session = await form_service.start_form("user-1", "housing_assistance")
        await session_store.commit(session.model_copy(update={"status": SessionStatus.SUBMITTED}), 0)

        with pytest.raises(SessionClosed):
            await autofill_service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.PROFILE))

    async def test_concurrent_user_edit_survives_retry(self, form_service, profile_client):
        session = await form_service.start_form("user-1", "housing_assistance")

        class EditingExtractionClient:
            """Lands a user edit while the extraction call is in flight"""

            async def get_extracted_fields(self, document_id):
                await form_service.update_field(session.session_id, "full_name", "Typed By User", 0)
                return {"full_name": CandidateValue(value="From Document"), "age": CandidateValue(value=50)}

        service = AutoFillService(form_service, extraction_client=EditingExtractionClient(), profile_client=profile_client)

        result = await service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.DOCUMENT, document_id="d"))

        assert result.session.field_values["full_name"] == "Typed By User"
        assert result.session.field_values["age"] == 50
        assert result.session.version == 2
        assert result.report.skipped_user_edited == ["full_name"]

    async def test_submission_locked_during_extraction_is_not_merged(self, form_service, session_store, profile_client):
        session = await form_service.start_form("user-1", "housing_assistance")

        class LockingExtractionClient:
            """A submission reserves the session while the extraction call is in flight"""

            async def get_extracted_fields(self, document_id):
                locked = session.model_copy(update={"pending_submission_key": f"{session.session_id}:abc"})
                await session_store.commit(locked, 0)
                return {"age": CandidateValue(value=50)}

        service = AutoFillService(form_service, extraction_client=LockingExtractionClient(), profile_client=profile_client)

        with pytest.raises(SubmissionPending):
            await service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.DOCUMENT, document_id="d"))

        reloaded = await form_service.load_session(session.session_id)
        assert "age" not in reloaded.field_values
        assert reloaded.version == 1

    async def test_gives_up_after_bounded_retries(self, form_service, session_store, profile_client):
        session = await form_service.start_form("user-1", "housing_assistance")

        original_commit = session_store.commit

        async def always_stale(updated, expected_version):
            raise Conflict("stale", current_version=expected_version + 1)

        session_store.commit = always_stale
        service = AutoFillService(form_service, profile_client=profile_client, max_retries=2)
        try:
            with pytest.raises(Conflict):
                await service.auto_fill(session.session_id, AutoFillSource(kind=FieldSource.PROFILE))
        finally:
            session_store.commit = original_commit
