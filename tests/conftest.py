"""Shared fixtures: a small published catalog, in-memory stores and collaborator doubles."""

import asyncio
from typing import Dict, List, Optional

import pytest

from govflow.exceptions import ExternalUnavailable, NotFound
from govflow.models import (
    Application,
    CandidateValue,
    Condition,
    DocumentRequirement,
    FieldType,
    FormDefinition,
    FormField,
    Operator,
    ProfileSnapshot,
    Requirement,
    RequirementType,
    ServiceDefinition,
    Step,
    SubmissionReceipt,
    UnknownPolicy,
    ValidationRules,
)
from govflow.services import (
    AutoFillService,
    CatalogIndex,
    EligibilityService,
    FormService,
    InMemoryApplicationStore,
    InMemorySessionStore,
    StatusService,
    SubmissionCoordinator,
)


def make_requirement(
    requirement_id: str,
    field: str,
    operator: Operator,
    value,
    mandatory: bool = True,
    requirement_type: RequirementType = RequirementType.AGE,
    unknown_policy: UnknownPolicy = UnknownPolicy.INELIGIBLE,
    description: Optional[str] = None,
) -> Requirement:
    return Requirement(
        requirement_id=requirement_id,
        type=requirement_type,
        condition=Condition(field=field, operator=operator, value=value),
        mandatory=mandatory,
        unknown_policy=unknown_policy,
        description=description,
    )


def make_service(service_id: str, requirements: List[Requirement], category: str = "housing") -> ServiceDefinition:
    return ServiceDefinition(
        service_id=service_id,
        name_key=f"services.{service_id}.name",
        category=category,
        requirements=requirements,
    )


def housing_service() -> ServiceDefinition:
    return ServiceDefinition(
        service_id="housing_assistance",
        name_key="services.housing_assistance.name",
        category="housing",
        requirements=[
            make_requirement("adult", "age", Operator.GTE, 18, description="Applicant is 18 or older"),
            make_requirement(
                "low_income", "annual_income", Operator.LTE, 30000,
                mandatory=False, requirement_type=RequirementType.INCOME,
                description="Annual income at or below 30,000",
            ),
        ],
        required_documents=[DocumentRequirement(document_type="proof_of_address")],
    )


def housing_form() -> FormDefinition:
    return FormDefinition(
        service_id="housing_assistance",
        version=1,
        steps=[
            Step(
                step_id="applicant",
                fields=[
                    FormField(
                        field_id="full_name", type=FieldType.TEXT, required=True,
                        rules=ValidationRules(min_length=2, max_length=100),
                    ),
                    FormField(
                        field_id="age", type=FieldType.INTEGER, required=True, profile_field="age",
                        rules=ValidationRules(min_value=18, max_value=120),
                    ),
                ],
            ),
            Step(
                step_id="finances",
                fields=[
                    FormField(
                        field_id="annual_income", type=FieldType.NUMBER, required=True,
                        profile_field="annual_income", rules=ValidationRules(min_value=0, soft_max=250000),
                    ),
                    FormField(
                        field_id="housing_type", type=FieldType.SELECT, required=False,
                        options=["rent", "own", "other"],
                    ),
                ],
            ),
            Step(
                step_id="documents",
                fields=[
                    FormField(field_id="proof_of_address", type=FieldType.DOCUMENT, required=False),
                ],
            ),
        ],
    )


class FakeProfileClient:
    """Profile provider double keyed by user id"""

    def __init__(self, profiles: Optional[Dict[str, ProfileSnapshot]] = None, delay: float = 0.0):
        self.profiles = profiles or {}
        self.delay = delay

    async def get_profile_snapshot(self, user_id: str) -> ProfileSnapshot:
        if self.delay:
            await asyncio.sleep(self.delay)
        if user_id not in self.profiles:
            raise NotFound(f"No profile for {user_id}")
        return self.profiles[user_id]


class FakeExtractionClient:
    """Document extraction double keyed by document id"""

    def __init__(self, documents: Optional[Dict[str, Dict[str, CandidateValue]]] = None, delay: float = 0.0):
        self.documents = documents or {}
        self.delay = delay

    async def get_extracted_fields(self, document_id: str) -> Dict[str, CandidateValue]:
        if self.delay:
            await asyncio.sleep(self.delay)
        return dict(self.documents.get(document_id, {}))


class FakeGovernmentClient:
    """Government API double that deduplicates on the idempotency key"""

    def __init__(self):
        self.calls: List[str] = []
        self.receipts: Dict[str, str] = {}
        self.fail_next = 0
        self.delay = 0.0

    async def submit(self, application: Application) -> SubmissionReceipt:
        self.calls.append(application.idempotency_key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_next:
            self.fail_next -= 1
            raise ExternalUnavailable("Government API is down", service="government_api")
        number = self.receipts.setdefault(application.idempotency_key, f"GOV-{len(self.receipts) + 1:05d}")
        return SubmissionReceipt(confirmation_number=number)


@pytest.fixture
def catalog() -> CatalogIndex:
    index = CatalogIndex()
    index.publish([housing_service()], [housing_form()])
    return index


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def application_store() -> InMemoryApplicationStore:
    return InMemoryApplicationStore()


@pytest.fixture
def profile_client() -> FakeProfileClient:
    return FakeProfileClient({
        "user-1": ProfileSnapshot(user_id="user-1", age=34, annual_income=24000, household_size=3),
    })


@pytest.fixture
def extraction_client() -> FakeExtractionClient:
    return FakeExtractionClient({
        "doc-1": {
            "full_name": CandidateValue(value="Dana Smith", confidence=0.95),
            "annual_income": CandidateValue(value="24,500", confidence=0.9),
            "housing_type": CandidateValue(value="rent", confidence=0.3),
            "favourite_colour": CandidateValue(value="green", confidence=0.99),
        },
    })


@pytest.fixture
def government_client() -> FakeGovernmentClient:
    return FakeGovernmentClient()


@pytest.fixture
def eligibility_service(catalog, profile_client) -> EligibilityService:
    return EligibilityService(catalog, profile_provider=profile_client)


@pytest.fixture
def form_service(catalog, session_store) -> FormService:
    return FormService(catalog, session_store)


@pytest.fixture
def autofill_service(form_service, extraction_client, profile_client) -> AutoFillService:
    return AutoFillService(
        form_service,
        extraction_client=extraction_client,
        profile_client=profile_client,
        min_confidence=0.6,
        max_retries=3,
        default_timeout=1.0,
    )


@pytest.fixture
def coordinator(form_service, application_store, government_client) -> SubmissionCoordinator:
    return SubmissionCoordinator(form_service, application_store, government_client, default_timeout=1.0)


@pytest.fixture
def status_service(form_service, application_store) -> StatusService:
    return StatusService(form_service, application_store)


@pytest.fixture
def fill_valid_form(form_service):
    """Fill every required field of a housing session and return the committed session"""

    async def _fill(session_id: str):
        session = await form_service.load_session(session_id)
        for field_id, value in (("full_name", "Dana Smith"), ("age", 34), ("annual_income", 24000)):
            session = await form_service.update_field(session_id, field_id, value, session.version)
        return session

    return _fill
