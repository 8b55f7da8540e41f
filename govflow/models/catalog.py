"""
Pydantic models for published service and form definitions
"""
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class RequirementType(str, Enum):
    """Closed set of eligibility requirement kinds"""
    AGE = "age"
    INCOME = "income"
    RESIDENCY = "residency"
    CITIZENSHIP = "citizenship"
    EMPLOYMENT = "employment"
    HOUSEHOLD_SIZE = "household_size"
    DISABILITY = "disability"
    VETERAN_STATUS = "veteran_status"


class Operator(str, Enum):
    """Comparison operators a condition may use"""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    IN = "in"
    BETWEEN = "between"


class UnknownPolicy(str, Enum):
    """How a requirement treats a profile value that is absent"""
    INELIGIBLE = "ineligible"
    NON_BLOCKING = "non_blocking"


class Condition(BaseModel):
    """Field reference + operator + comparison value"""
    field: str = Field(..., description="ProfileSnapshot attribute to compare")
    operator: Operator = Field(..., description="Comparison operator")
    value: Any = Field(..., description="Comparison value; a list for 'in', [min, max] for 'between'")

    model_config = ConfigDict(frozen=True)


class Requirement(BaseModel):
    """Single eligibility requirement of a service"""
    requirement_id: str = Field(..., description="Identifier unique within the service")
    type: RequirementType = Field(..., description="Requirement category")
    condition: Condition
    mandatory: bool = Field(True, description="Unmatched mandatory requirements make the verdict ineligible")
    unknown_policy: UnknownPolicy = Field(
        UnknownPolicy.INELIGIBLE,
        description="'non_blocking' excludes an optional requirement from scoring when the value is unknown"
    )
    description: Optional[str] = Field(None, description="Human-readable summary used in explanations")

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        return self.description or self.requirement_id


class DocumentRequirement(BaseModel):
    """Document the applicant must supply"""
    document_type: str
    description_key: Optional[str] = None
    mandatory: bool = True

    model_config = ConfigDict(frozen=True)


class ServiceDefinition(BaseModel):
    """Published government service with its eligibility requirements"""
    service_id: str = Field(..., description="Unique identifier for the service")
    version: int = Field(1, ge=1, description="Definition version")
    name_key: str = Field(..., description="Opaque i18n key of the service name")
    description_key: Optional[str] = None
    category: str = Field(..., description="Catalog category")
    requirements: List[Requirement] = Field(default_factory=list)
    required_documents: List[DocumentRequirement] = Field(default_factory=list)
    benefit_outline_key: Optional[str] = None
    next_steps_key: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "service_id": "housing_assistance",
                "version": 1,
                "name_key": "services.housing_assistance.name",
                "category": "housing",
                "requirements": [
                    {
                        "requirement_id": "adult",
                        "type": "age",
                        "condition": {"field": "age", "operator": "gte", "value": 18},
                        "mandatory": True,
                        "description": "Applicant must be 18 or older"
                    },
                    {
                        "requirement_id": "low_income",
                        "type": "income",
                        "condition": {"field": "annual_income", "operator": "lte", "value": 30000},
                        "mandatory": False,
                        "description": "Annual income at or below 30,000"
                    }
                ],
                "required_documents": [{"document_type": "proof_of_address"}]
            }
        }
    )


class FieldType(str, Enum):
    """Form field value types"""
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    DATE = "date"
    BOOLEAN = "boolean"
    SELECT = "select"
    MULTISELECT = "multiselect"
    EMAIL = "email"
    PHONE = "phone"
    DOCUMENT = "document"


class ValidationRules(BaseModel):
    """Declarative rule set attached to a form field"""
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None
    allow_future_dates: bool = True
    allow_past_dates: bool = True
    max_years_ago: Optional[int] = Field(None, ge=0, description="Oldest plausible date, in years before today")
    soft_min: Optional[float] = Field(None, description="Values below produce a warning, not an error")
    soft_max: Optional[float] = Field(None, description="Values above produce a warning, not an error")

    model_config = ConfigDict(frozen=True)


class FormField(BaseModel):
    """Single input field of a form step"""
    field_id: str
    type: FieldType
    required: bool = False
    label_key: Optional[str] = None
    rules: ValidationRules = Field(default_factory=ValidationRules)
    options: List[str] = Field(default_factory=list, description="Allowed values for select/multiselect")
    profile_field: Optional[str] = Field(None, description="ProfileSnapshot attribute used to auto-fill this field")

    model_config = ConfigDict(frozen=True)


class Step(BaseModel):
    """Ordered group of fields shown together"""
    step_id: str
    title_key: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class FormDefinition(BaseModel):
    """Versioned multi-step application form of a service"""
    service_id: str
    version: int = Field(1, ge=1)
    steps: List[Step] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def all_fields(self) -> List[FormField]:
        return [field for step in self.steps for field in step.fields]

    def get_field(self, field_id: str) -> Optional[FormField]:
        for field in self.all_fields():
            if field.field_id == field_id:
                return field
        return None

    def required_fields(self) -> List[FormField]:
        return [field for field in self.all_fields() if field.required]
