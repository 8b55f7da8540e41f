"""
Pydantic models for submitted applications and status events
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .session import SessionStatus


def get_current_utc_time():
    """Get current UTC time for default values"""
    return datetime.now(timezone.utc)


# Status an application (and its session) may move to from each status.
APPLICATION_TRANSITIONS = {
    SessionStatus.SUBMITTED: frozenset({
        SessionStatus.UNDER_REVIEW,
        SessionStatus.REQUIRES_ACTION,
        SessionStatus.APPROVED,
        SessionStatus.REJECTED,
        SessionStatus.WITHDRAWN,
    }),
    SessionStatus.UNDER_REVIEW: frozenset({
        SessionStatus.REQUIRES_ACTION,
        SessionStatus.APPROVED,
        SessionStatus.REJECTED,
        SessionStatus.WITHDRAWN,
    }),
    SessionStatus.REQUIRES_ACTION: frozenset({
        SessionStatus.UNDER_REVIEW,
        SessionStatus.APPROVED,
        SessionStatus.REJECTED,
        SessionStatus.WITHDRAWN,
    }),
}


class StatusChange(BaseModel):
    """Entry of an application's append-only status history"""
    status: SessionStatus
    reason: Optional[str] = None
    changed_at: datetime = Field(default_factory=get_current_utc_time)

    model_config = ConfigDict(frozen=True)


class Application(BaseModel):
    """Immutable record created by a successful submission"""
    application_id: str
    session_id: str
    user_id: str
    service_id: str
    form_version: int
    idempotency_key: str
    content_hash: str
    frozen_fields: Dict[str, Any]
    document_ids: List[str] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.SUBMITTED
    status_history: List[StatusChange] = Field(default_factory=list)
    confirmation_number: Optional[str] = None
    submitted_at: datetime = Field(default_factory=get_current_utc_time)

    model_config = ConfigDict(frozen=True)


class StatusEvent(BaseModel):
    """Status update delivered by the government status feed"""
    application_id: str
    new_status: SessionStatus
    reason: Optional[str] = None


class SubmitRequest(BaseModel):
    timeout_seconds: Optional[float] = Field(None, gt=0)


class SubmissionReceipt(BaseModel):
    """Government API acknowledgement"""
    confirmation_number: str


class SubmissionResult(BaseModel):
    """Application returned by a submission; `duplicate` marks an idempotent repeat"""
    application: Application
    duplicate: bool = False
