"""
Exception hierarchy for the eligibility and form workflow engine.

Every error carries the HTTP status it maps to, a stable error code and
whether the caller may retry the same operation. Routes turn these into
HTTPException responses.
"""
from typing import Any, Dict, List, Optional


class GovFlowError(Exception):
    """Base exception for all engine errors"""

    status_code: int = 500
    error_code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        """Structured payload returned to API callers"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
        }


class ConfigurationError(GovFlowError):
    """Malformed requirement, condition or form definition.

    Raised while a catalog is being published; a catalog that raises this is
    never made visible to evaluations.
    """

    status_code = 422
    error_code = "configuration_error"

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or [message]

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["problems"] = self.problems
        return detail


class ValidationError(GovFlowError):
    """One or more field values failed validation"""

    status_code = 422
    error_code = "validation_error"

    def __init__(self, message: str, field_errors: Dict[str, List[Dict[str, Any]]]):
        super().__init__(message)
        self.field_errors = field_errors

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["field_errors"] = self.field_errors
        return detail


class NotFound(GovFlowError):
    """Requested session, application, service or form does not exist"""

    status_code = 404
    error_code = "not_found"


class Conflict(GovFlowError):
    """Caller presented a stale session version"""

    status_code = 409
    error_code = "conflict"
    retryable = True

    def __init__(self, message: str, current_version: Optional[int] = None):
        super().__init__(message)
        self.current_version = current_version

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["current_version"] = self.current_version
        return detail


class SessionClosed(GovFlowError):
    """Mutation attempted on a session that has been submitted"""

    status_code = 409
    error_code = "session_closed"


class SubmissionPending(SessionClosed):
    """Mutation attempted while the session's submission is being handed off"""

    error_code = "submission_pending"


class SessionNotReady(GovFlowError):
    """Submission attempted before the form passed full validation"""

    status_code = 409
    error_code = "session_not_ready"


class InvalidTransition(GovFlowError):
    """Status change not permitted from the current status"""

    status_code = 409
    error_code = "invalid_transition"


class ExternalServiceError(GovFlowError):
    """Base class for collaborator failures; always safe to retry"""

    retryable = True

    def __init__(self, message: str, service: str):
        super().__init__(message)
        self.service = service

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["service"] = self.service
        return detail


class ExternalUnavailable(ExternalServiceError):
    """Collaborator refused or failed the request"""

    status_code = 503
    error_code = "external_unavailable"


class ExternalTimeout(ExternalServiceError):
    """Collaborator did not answer within the caller's timeout"""

    status_code = 504
    error_code = "external_timeout"
