"""
API routes for eligibility search
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_catalog, get_eligibility_service
from ..exceptions import GovFlowError
from ..models import EligibilityResult, ProfileSnapshot, SearchFilters, SearchRequest, SearchResponse
from ..services import CatalogIndex, EligibilityService
from .common import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


@router.post("/search", response_model=SearchResponse)
async def search_eligible_services(
    request: SearchRequest,
    eligibility_service: EligibilityService = Depends(get_eligibility_service)
):
    """
    Score catalog services against a profile and return them ranked
    """
    try:
        return eligibility_service.search_eligible_services(request.profile, request.filters)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error searching eligible services: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to search services: {str(e)}")


@router.get("/users/{user_id}", response_model=SearchResponse)
async def search_for_user(
    user_id: str,
    category: Optional[str] = Query(None, description="Only score services in this category"),
    include_ineligible: bool = Query(False, description="Also return ineligible services"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of results"),
    eligibility_service: EligibilityService = Depends(get_eligibility_service)
):
    """
    Search eligible services using the user's stored profile snapshot
    """
    try:
        filters = SearchFilters(category=category, include_ineligible=include_ineligible, limit=limit)
        return await eligibility_service.search_for_user(user_id, filters)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error searching services for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to search services: {str(e)}")


@router.post("/services/{service_id}/check", response_model=EligibilityResult)
async def check_service(
    service_id: str,
    profile: ProfileSnapshot,
    catalog: CatalogIndex = Depends(get_catalog),
    eligibility_service: EligibilityService = Depends(get_eligibility_service)
):
    """
    Score a single service, eligible or not
    """
    try:
        service = catalog.get_service(service_id)
        if service is None:
            raise HTTPException(status_code=404, detail=f"Service not found: {service_id}")
        return eligibility_service.score(service, profile)
    except HTTPException:
        raise
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error checking service {service_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to check eligibility: {str(e)}")
