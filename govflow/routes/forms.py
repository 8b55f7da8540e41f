"""
API routes for form sessions: filling, auto-fill, validation and submission
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Response

from ..dependencies import get_autofill_service, get_form_service, get_submission_coordinator
from ..exceptions import GovFlowError
from ..models import (
    AutoFillResult,
    AutoFillSource,
    FieldUpdateRequest,
    FormSession,
    FormState,
    FormValidationResult,
    StartFormRequest,
    StepChangeRequest,
    SubmissionResult,
    SubmitRequest
)
from ..services import AutoFillService, FormService, SubmissionCoordinator
from .common import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["forms"])


@router.post("/", response_model=FormState, status_code=201)
async def start_form(
    request: StartFormRequest,
    form_service: FormService = Depends(get_form_service)
):
    """
    Start a form session for a service, or resume the user's open one
    """
    try:
        session = await form_service.start_form(request.user_id, request.service_id, resume=request.resume)
        return form_service.build_state(session)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error starting form for {request.user_id}/{request.service_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to start form: {str(e)}")


@router.get("/users/{user_id}", response_model=List[FormSession])
async def list_user_sessions(user_id: str, form_service: FormService = Depends(get_form_service)):
    """
    List a user's form sessions, most recently updated first
    """
    try:
        return await form_service.list_sessions(user_id)
    except Exception as e:
        logger.error(f"Error listing sessions for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to list sessions: {str(e)}")


@router.get("/{session_id}", response_model=FormState)
async def get_form_state(session_id: str, form_service: FormService = Depends(get_form_service)):
    """
    Get a session with its progress and missing required fields
    """
    try:
        return await form_service.get_form_state(session_id)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error loading session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load session: {str(e)}")


@router.put("/{session_id}/fields/{field_id}", response_model=FormState)
async def update_field(
    session_id: str,
    field_id: str,
    request: FieldUpdateRequest,
    form_service: FormService = Depends(get_form_service)
):
    """
    Validate and save a single field value
    """
    try:
        session = await form_service.update_field(session_id, field_id, request.value, request.expected_version)
        return form_service.build_state(session)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating {session_id}/{field_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to update field: {str(e)}")


@router.post("/{session_id}/step", response_model=FormState)
async def go_to_step(
    session_id: str,
    request: StepChangeRequest,
    form_service: FormService = Depends(get_form_service)
):
    """
    Move the session to another step
    """
    try:
        session = await form_service.go_to_step(session_id, request.step_index, request.expected_version)
        return form_service.build_state(session)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error changing step on {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to change step: {str(e)}")


@router.post("/{session_id}/autofill", response_model=AutoFillResult)
async def auto_fill(
    session_id: str,
    source: AutoFillSource,
    autofill_service: AutoFillService = Depends(get_autofill_service)
):
    """
    Fill untouched fields from the user's profile or an uploaded document
    """
    try:
        return await autofill_service.auto_fill(session_id, source)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error auto-filling {session_id} from {source.label}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to auto-fill form: {str(e)}")


@router.post("/{session_id}/validate", response_model=FormValidationResult)
async def validate_form(session_id: str, form_service: FormService = Depends(get_form_service)):
    """
    Validate the whole form; a valid form becomes ready for review
    """
    try:
        return await form_service.validate_form(session_id)
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error validating {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to validate form: {str(e)}")


@router.post("/{session_id}/submit", response_model=SubmissionResult, status_code=201)
async def submit_form(
    session_id: str,
    response: Response,
    request: Optional[SubmitRequest] = Body(None),
    coordinator: SubmissionCoordinator = Depends(get_submission_coordinator)
):
    """
    Submit a reviewed form to the government service

    Repeating the submission of unchanged content returns the existing
    application with status 200.
    """
    try:
        timeout = request.timeout_seconds if request else None
        result = await coordinator.submit(session_id, timeout=timeout)
        if result.duplicate:
            response.status_code = 200
        return result
    except GovFlowError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error submitting {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to submit form: {str(e)}")
