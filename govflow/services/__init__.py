"""
Services package for the GovFlow eligibility and form workflow engine
"""

from .catalog_service import CatalogIndex, CatalogSnapshot
from .eligibility_service import EligibilityService
from .session_store import (
    SessionStore,
    ApplicationStore,
    InMemorySessionStore,
    InMemoryApplicationStore
)
from .form_service import FormService, compute_progress
from .autofill_service import AutoFillService, merge
from .submission_service import SubmissionCoordinator
from .status_service import StatusService

__all__ = [
    "CatalogIndex",
    "CatalogSnapshot",
    "EligibilityService",
    "SessionStore",
    "ApplicationStore",
    "InMemorySessionStore",
    "InMemoryApplicationStore",
    "FormService",
    "compute_progress",
    "AutoFillService",
    "merge",
    "SubmissionCoordinator",
    "StatusService"
]
