"""
Pydantic Schemas for Eligibility Checks and Coverage Verification.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from eligibility_service.core.enums import (
    CoverageLevel,
    LimitationType,
    MessageType,
    ServiceCoverageStatus,
    VerificationOutcome,
)
from eligibility_service.schemas.coverage import Money, Rate


class ResponseMessage(BaseModel):
    """Informational, warning or error message attached to a response."""

    type: MessageType
    code: str
    message: str
    details: Optional[str] = None


# =============================================================================
# Eligibility Check
# =============================================================================


class EligibilityRequest(BaseModel):
    """Eligibility check request. Ephemeral, never persisted."""

    request_id: str = Field(default="", max_length=64, description="Generated when empty")
    member_id: str = Field(..., min_length=1, max_length=50, description="Member national ID")
    provider_id: str = Field(default="", max_length=50, description="Rendering provider ID")
    service_date: date = Field(..., description="Date of service (YYYY-MM-DD)")
    service_codes: list[str] = Field(default_factory=list, description="CPT/HCPCS codes")
    requested_by: str = Field(default="", max_length=100, description="Requester identity")
    request_time: Optional[datetime] = None

    @field_validator("member_id", "provider_id")
    @classmethod
    def strip_identifiers(cls, v: str) -> str:
        return v.strip()

    @field_validator("service_codes")
    @classmethod
    def normalize_codes(cls, v: list[str]) -> list[str]:
        """Drop blanks and surrounding whitespace from service codes."""
        return [code.strip() for code in v if code and code.strip()]


class BenefitInformation(BaseModel):
    """Benefit projection for one service category. Derived, not persisted."""

    service_category: str
    in_network: bool
    copay_amount: Money
    coinsurance_rate: Rate
    deductible_amount: Money
    deductible_met: bool
    remaining_deductible: Money
    out_of_pocket_max: Money
    remaining_oop_max: Money
    prior_auth_required: bool
    coverage_level: CoverageLevel


class CoverageLimitation(BaseModel):
    """Limitation projection. Derived, not persisted."""

    service_category: str
    limitation_type: LimitationType
    limit_value: Money
    used_amount: Money
    remaining_amount: Money
    period: str
    reset_date: str = ""


class EligibilityResponse(BaseModel):
    """Eligibility decision."""

    request_id: str = ""
    member_id: str
    eligible: bool = False
    coverage_status: str
    effective_date: str = ""
    expiration_date: str = ""
    benefits: list[BenefitInformation] = Field(default_factory=list)
    limitations: list[CoverageLimitation] = Field(default_factory=list)
    messages: list[ResponseMessage] = Field(default_factory=list)
    response_time: Optional[datetime] = None
    cache_hit: bool = False

    def business_fields(self) -> dict[str, Any]:
        """JSON view without the per-request decorations."""
        return self.model_dump(
            mode="json", exclude={"request_id", "response_time", "cache_hit"}
        )


# =============================================================================
# Coverage Verification
# =============================================================================


class CoverageVerificationRequest(BaseModel):
    """Verification body; the member ID comes from the path."""

    service_date: date
    service_codes: list[str] = Field(..., min_length=1)
    provider_id: str = Field(..., min_length=1, max_length=50)
    place_of_service: Optional[str] = Field(None, max_length=4)

    @field_validator("service_codes")
    @classmethod
    def normalize_codes(cls, v: list[str]) -> list[str]:
        codes = [code.strip() for code in v if code and code.strip()]
        if not codes:
            raise ValueError("At least one service code is required")
        return codes


class ServiceVerification(BaseModel):
    """Point-in-time coverage and cost estimate for one service code."""

    service_code: str
    status: ServiceCoverageStatus
    coverage_level: Rate = Field(description="Share of the allowed amount paid by the plan")
    estimated_cost: Money
    patient_cost: Money
    auth_required: bool
    reason_codes: list[str] = Field(default_factory=list)


class CoverageVerificationResponse(BaseModel):
    """Advisory, time-boxed verification result."""

    member_id: str
    verification_id: str
    service_date: date
    services: list[ServiceVerification] = Field(default_factory=list)
    overall_status: VerificationOutcome
    auth_required: bool = False
    messages: list[ResponseMessage] = Field(default_factory=list)
    valid_until: datetime


# =============================================================================
# Admin Statistics
# =============================================================================


class CacheStatistics(BaseModel):
    """Cache hit/miss statistics."""

    hit_rate: float = 0.0
    miss_rate: float = 0.0
    total_hits: int = 0
    total_misses: int = 0
    cached_entries: Optional[int] = None
    cache_size: Optional[str] = None
    eviction_count: Optional[int] = None


class RequestStatistics(BaseModel):
    """Eligibility request statistics."""

    total_requests: int = 0
    average_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0
    sla_breaches: int = 0


class ServiceStats(BaseModel):
    """Service statistics snapshot."""

    service: str
    version: str
    uptime_seconds: float
    request_stats: RequestStatistics
    cache_stats: CacheStatistics
    database_queries: dict[str, int] = Field(default_factory=dict)
    dependencies: dict[str, bool] = Field(default_factory=dict)