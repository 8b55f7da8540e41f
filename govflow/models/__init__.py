"""
Models package for the GovFlow eligibility and form workflow engine
"""

from .catalog import (
    RequirementType,
    Operator,
    UnknownPolicy,
    Condition,
    Requirement,
    DocumentRequirement,
    ServiceDefinition,
    FieldType,
    ValidationRules,
    FormField,
    Step,
    FormDefinition
)

from .profile import (
    ProfileSnapshot,
    Verdict,
    EligibilityResult,
    SearchFilters,
    SearchRequest,
    SearchResponse
)

from .session import (
    SessionStatus,
    EDITABLE_STATUSES,
    TERMINAL_STATUSES,
    FieldIssue,
    FieldValidationResult,
    FieldSource,
    FormSession,
    FormState,
    FormValidationResult,
    StartFormRequest,
    FieldUpdateRequest,
    StepChangeRequest,
    AutoFillSource,
    CandidateValue,
    MergeReport,
    AutoFillResult
)

from .application import (
    APPLICATION_TRANSITIONS,
    StatusChange,
    Application,
    StatusEvent,
    SubmitRequest,
    SubmissionReceipt,
    SubmissionResult
)

__all__ = [
    # Catalog models
    "RequirementType",
    "Operator",
    "UnknownPolicy",
    "Condition",
    "Requirement",
    "DocumentRequirement",
    "ServiceDefinition",
    "FieldType",
    "ValidationRules",
    "FormField",
    "Step",
    "FormDefinition",

    # Profile and eligibility models
    "ProfileSnapshot",
    "Verdict",
    "EligibilityResult",
    "SearchFilters",
    "SearchRequest",
    "SearchResponse",

    # Session models
    "SessionStatus",
    "EDITABLE_STATUSES",
    "TERMINAL_STATUSES",
    "FieldIssue",
    "FieldValidationResult",
    "FieldSource",
    "FormSession",
    "FormState",
    "FormValidationResult",
    "StartFormRequest",
    "FieldUpdateRequest",
    "StepChangeRequest",
    "AutoFillSource",
    "CandidateValue",
    "MergeReport",
    "AutoFillResult",

    # Application models
    "APPLICATION_TRANSITIONS",
    "StatusChange",
    "Application",
    "StatusEvent",
    "SubmitRequest",
    "SubmissionReceipt",
    "SubmissionResult"
]
