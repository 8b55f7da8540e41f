"""
API routes for the service catalog
"""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_catalog
from ..exceptions import GovFlowError
from ..models import FormDefinition, ServiceDefinition
from ..services import CatalogIndex
from .common import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])


@router.get("/", response_model=List[ServiceDefinition])
async def list_services(
    category: Optional[str] = Query(None, description="Filter by category"),
    catalog: CatalogIndex = Depends(get_catalog)
):
    """
    List published services in catalog order
    """
    if category:
        return catalog.list_by_category(category)
    return catalog.list_services()


@router.post("/catalog")
async def publish_catalog(
    payload: Dict[str, Any],
    catalog: CatalogIndex = Depends(get_catalog)
):
    """
    Publish a new catalog snapshot; a malformed catalog is rejected whole
    """
    try:
        snapshot = catalog.publish_payload(payload)
        return {
            "catalog_version": snapshot.catalog_version,
            "services": len(snapshot.services),
            "forms": len(snapshot.forms)
        }
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error publishing catalog: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to publish catalog: {str(e)}")


@router.get("/{service_id}", response_model=ServiceDefinition)
async def get_service(service_id: str, catalog: CatalogIndex = Depends(get_catalog)):
    """
    Get a specific service by ID
    """
    service = catalog.get_service(service_id)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Service not found: {service_id}")
    return service


@router.get("/{service_id}/form", response_model=FormDefinition)
async def get_form(
    service_id: str,
    version: Optional[int] = Query(None, ge=1, description="Form version (latest if omitted)"),
    catalog: CatalogIndex = Depends(get_catalog)
):
    """
    Get the application form of a service
    """
    form = catalog.get_form(service_id, version)
    if form is None:
        raise HTTPException(status_code=404, detail=f"Form not found for service: {service_id}")
    return form
