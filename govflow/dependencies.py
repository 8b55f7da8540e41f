"""
Dependency wiring for API routes.

Instances are created once, on first use, from settings. Tests replace them
through FastAPI's dependency_overrides or reset_dependencies().
"""
import logging
from typing import Optional

from govflow.clients import build_extraction_client, build_government_client, build_profile_client
from govflow.config import settings
from govflow.database import get_database
from govflow.services import (
    ApplicationStore,
    AutoFillService,
    CatalogIndex,
    EligibilityService,
    FormService,
    InMemoryApplicationStore,
    InMemorySessionStore,
    SessionStore,
    StatusService,
    SubmissionCoordinator
)

logger = logging.getLogger(__name__)

_catalog: Optional[CatalogIndex] = None
_session_store: Optional[SessionStore] = None
_application_store: Optional[ApplicationStore] = None
_eligibility_service: Optional[EligibilityService] = None
_form_service: Optional[FormService] = None
_autofill_service: Optional[AutoFillService] = None
_submission_coordinator: Optional[SubmissionCoordinator] = None
_status_service: Optional[StatusService] = None


def get_catalog() -> CatalogIndex:
    global _catalog
    if _catalog is None:
        _catalog = CatalogIndex()
    return _catalog


def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        if settings.storage_backend == "mongo":
            from govflow.services.mongo_service import MongoSessionStore
            _session_store = MongoSessionStore(get_database())
        else:
            _session_store = InMemorySessionStore()
        logger.info(f"Session store: {type(_session_store).__name__}")
    return _session_store


def get_application_store() -> ApplicationStore:
    global _application_store
    if _application_store is None:
        if settings.storage_backend == "mongo":
            from govflow.services.mongo_service import MongoApplicationStore
            _application_store = MongoApplicationStore(get_database())
        else:
            _application_store = InMemoryApplicationStore()
        logger.info(f"Application store: {type(_application_store).__name__}")
    return _application_store


def get_eligibility_service() -> EligibilityService:
    global _eligibility_service
    if _eligibility_service is None:
        _eligibility_service = EligibilityService(get_catalog(), profile_provider=build_profile_client())
    return _eligibility_service


def get_form_service() -> FormService:
    global _form_service
    if _form_service is None:
        _form_service = FormService(get_catalog(), get_session_store())
    return _form_service


def get_autofill_service() -> AutoFillService:
    global _autofill_service
    if _autofill_service is None:
        _autofill_service = AutoFillService(
            get_form_service(),
            extraction_client=build_extraction_client(),
            profile_client=build_profile_client(),
            min_confidence=settings.autofill_min_confidence,
            max_retries=settings.autofill_max_retries,
            default_timeout=settings.extraction_timeout_seconds
        )
    return _autofill_service


def get_submission_coordinator() -> SubmissionCoordinator:
    global _submission_coordinator
    if _submission_coordinator is None:
        _submission_coordinator = SubmissionCoordinator(
            get_form_service(),
            get_application_store(),
            build_government_client(),
            default_timeout=settings.submission_timeout_seconds
        )
    return _submission_coordinator


def get_status_service() -> StatusService:
    global _status_service
    if _status_service is None:
        _status_service = StatusService(get_form_service(), get_application_store())
    return _status_service


def reset_dependencies() -> None:
    """Drop every cached instance"""
    global _catalog, _session_store, _application_store, _eligibility_service
    global _form_service, _autofill_service, _submission_coordinator, _status_service
    _catalog = None
    _session_store = None
    _application_store = None
    _eligibility_service = None
    _form_service = None
    _autofill_service = None
    _submission_coordinator = None
    _status_service = None
