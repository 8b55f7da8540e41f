"""
API routes for submitted applications
"""
import logging
from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_status_service
from ..exceptions import GovFlowError
from ..models import Application, StatusEvent
from ..services import StatusService
from .common import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])


@router.get("/{application_id}", response_model=Application)
async def get_application(application_id: str, status_service: StatusService = Depends(get_status_service)):
    """
    Get a submitted application and its status history
    """
    try:
        return await status_service.get_application(application_id)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error loading application {application_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load application: {str(e)}")


@router.post("/status-events", response_model=Application)
async def apply_status_event(event: StatusEvent, status_service: StatusService = Depends(get_status_service)):
    """
    Apply a status update reported by the government service
    """
    try:
        return await status_service.apply_status_event(event)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error applying status event for {event.application_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to apply status event: {str(e)}")
