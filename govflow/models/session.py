"""
Pydantic models for form sessions and their validation state
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


def get_current_utc_time():
    """Get current UTC time for default values"""
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Lifecycle states of a form session"""
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    READY_FOR_REVIEW = "ready_for_review"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REQUIRES_ACTION = "requires_action"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


# Statuses in which field values may still change
EDITABLE_STATUSES = frozenset({
    SessionStatus.DRAFT,
    SessionStatus.IN_PROGRESS,
    SessionStatus.READY_FOR_REVIEW,
})

TERMINAL_STATUSES = frozenset({
    SessionStatus.APPROVED,
    SessionStatus.REJECTED,
    SessionStatus.WITHDRAWN,
})


class FieldIssue(BaseModel):
    """Single validation error or warning"""
    code: str
    message: str

    model_config = ConfigDict(frozen=True)


class FieldValidationResult(BaseModel):
    """Outcome of validating one field value"""
    field_id: str
    valid: bool
    errors: List[FieldIssue] = Field(default_factory=list)
    warnings: List[FieldIssue] = Field(default_factory=list)
    value: Any = Field(None, description="Normalized value, set only when valid")

    model_config = ConfigDict(frozen=True)


class FieldSource(str, Enum):
    USER = "user"
    PROFILE = "profile"
    DOCUMENT = "document"


class FormSession(BaseModel):
    """Persisted state of one user's work on one service form"""
    session_id: str
    user_id: str
    service_id: str
    form_version: int
    status: SessionStatus = SessionStatus.DRAFT
    current_step_index: int = 0
    field_values: Dict[str, Any] = Field(default_factory=dict)
    validation: Dict[str, FieldValidationResult] = Field(default_factory=dict)
    user_edited: Dict[str, bool] = Field(default_factory=dict)
    field_sources: Dict[str, str] = Field(default_factory=dict)
    attached_documents: List[str] = Field(default_factory=list)
    version: int = Field(0, ge=0, description="Incremented on every accepted mutation")
    created_at: datetime = Field(default_factory=get_current_utc_time)
    updated_at: datetime = Field(default_factory=get_current_utc_time)
    submitted_at: Optional[datetime] = None
    application_id: Optional[str] = None
    pending_submission_key: Optional[str] = Field(
        None, description="Idempotency key of a hand-off in flight; the session is locked while set"
    )

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def was_user_edited(self, field_id: str) -> bool:
        return self.user_edited.get(field_id, False)


class FormState(BaseModel):
    """Session snapshot together with values derived from the form definition"""
    session: FormSession
    progress: float = Field(..., ge=0, le=100)
    current_step_id: Optional[str] = None
    total_steps: int
    missing_required: List[str] = Field(default_factory=list)


class FormValidationResult(BaseModel):
    """Outcome of validating a whole form"""
    session_id: str
    valid: bool
    status: SessionStatus
    version: int
    progress: float = Field(..., ge=0, le=100)
    field_errors: Dict[str, List[FieldIssue]] = Field(default_factory=dict)
    warnings: Dict[str, List[FieldIssue]] = Field(default_factory=dict)
    missing_required: List[str] = Field(default_factory=list)


class StartFormRequest(BaseModel):
    user_id: str
    service_id: str
    resume: bool = Field(True, description="Resume the user's open session for this service if one exists")


class FieldUpdateRequest(BaseModel):
    value: Any = None
    expected_version: int = Field(..., ge=0)


class StepChangeRequest(BaseModel):
    step_index: int = Field(..., ge=0)
    expected_version: int = Field(..., ge=0)


class AutoFillSource(BaseModel):
    """Where auto-fill candidates come from"""
    kind: FieldSource = Field(..., description="'profile' or 'document'")
    document_id: Optional[str] = Field(None, description="Required when kind is 'document'")
    timeout_seconds: Optional[float] = Field(None, gt=0)

    @property
    def label(self) -> str:
        if self.kind == FieldSource.DOCUMENT:
            return f"document:{self.document_id}"
        return self.kind.value


class CandidateValue(BaseModel):
    """Externally proposed value for a field"""
    value: Any
    confidence: float = Field(1.0, ge=0.0, le=1.0)


class MergeReport(BaseModel):
    """What an auto-fill merge did with each candidate"""
    source: str
    applied: List[str] = Field(default_factory=list)
    skipped_user_edited: List[str] = Field(default_factory=list)
    low_confidence: List[str] = Field(default_factory=list)
    unknown_fields: List[str] = Field(default_factory=list)
    rejected: Dict[str, List[FieldIssue]] = Field(default_factory=dict)


class AutoFillResult(BaseModel):
    session: FormSession
    report: MergeReport
