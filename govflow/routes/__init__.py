"""
API routes for the GovFlow eligibility and form workflow engine
"""

from .services import router as services_router
from .eligibility import router as eligibility_router
from .forms import router as forms_router
from .applications import router as applications_router

__all__ = [
    "services_router",
    "eligibility_router",
    "forms_router",
    "applications_router"
]
