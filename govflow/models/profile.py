"""
Pydantic models for profile snapshots and eligibility results
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


def get_current_utc_time():
    """Get current UTC time for default values"""
    return datetime.now(timezone.utc)


class ProfileSnapshot(BaseModel):
    """Eligibility-relevant subset of a user profile, passed by value"""
    user_id: Optional[str] = Field(None, description="Owner of the profile")
    age: Optional[int] = Field(None, ge=0, le=150, description="Age in years")
    household_size: Optional[int] = Field(None, ge=1, description="Number of people in the household")
    location: Optional[str] = Field(None, description="Region or state of residence")
    residency_years: Optional[float] = Field(None, ge=0, description="Years resident at location")
    annual_income: Optional[float] = Field(None, ge=0, description="Annual household income")
    income_bracket: Optional[str] = Field(None, description="Income bracket label")
    employment_status: Optional[str] = Field(None, description="e.g. employed, unemployed, retired")
    citizenship: Optional[str] = Field(None, description="Citizenship or residence status")
    is_veteran: Optional[bool] = Field(None, description="Whether user is a veteran")
    has_disability: Optional[bool] = Field(None, description="Whether user has a disability")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "user_id": "user-123",
                "age": 34,
                "household_size": 3,
                "location": "CA",
                "residency_years": 6,
                "annual_income": 28000,
                "income_bracket": "low",
                "employment_status": "employed",
                "citizenship": "citizen",
                "is_veteran": False,
                "has_disability": False
            }
        }
    )


class Verdict(str, Enum):
    ELIGIBLE = "eligible"
    INELIGIBLE = "ineligible"


class EligibilityResult(BaseModel):
    """Result of scoring one service against one profile"""
    service_id: str = Field(..., description="Service identifier")
    service_version: int = Field(..., description="Version of the definition that was scored")
    category: str = Field(..., description="Catalog category of the service")
    verdict: Verdict = Field(..., description="Eligible or ineligible")
    score: float = Field(..., ge=0, le=100, description="Eligibility score (0-100)")
    matched: List[str] = Field(default_factory=list, description="Requirement ids that matched")
    missing: List[str] = Field(default_factory=list, description="Requirement ids that did not match")
    unknown: List[str] = Field(default_factory=list, description="Non-blocking requirement ids skipped for lack of data")
    explanation: str = Field(..., description="Summary derived from matched and missing requirements")
    required_documents: List[str] = Field(default_factory=list, description="Documents needed for application")

    model_config = ConfigDict(frozen=True)

    @property
    def is_eligible(self) -> bool:
        return self.verdict == Verdict.ELIGIBLE


class SearchFilters(BaseModel):
    """Caller-supplied filters for an eligibility search"""
    category: Optional[str] = Field(None, description="Only score services in this category")
    service_ids: Optional[List[str]] = Field(None, description="Only score these services")
    include_ineligible: bool = Field(False, description="Also return scored but ineligible services")
    min_score: float = Field(0, ge=0, le=100, description="Drop results scoring below this")
    limit: Optional[int] = Field(None, ge=1, description="Maximum number of results")


class SearchRequest(BaseModel):
    """Request to search eligible services for a profile"""
    profile: ProfileSnapshot
    filters: SearchFilters = Field(default_factory=SearchFilters)


class SearchResponse(BaseModel):
    """Ranked search results"""
    catalog_version: int = Field(..., description="Catalog snapshot the search ran against")
    total_services_checked: int
    eligible_services: int
    results: List[EligibilityResult]
    checked_at: datetime = Field(default_factory=get_current_utc_time)
    processing_time_ms: Optional[float] = Field(None, description="Time taken to process request")
