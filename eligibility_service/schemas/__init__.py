"""
Pydantic Schemas for the Eligibility Service.

This module exports all request/response schemas for the API.
"""

from eligibility_service.schemas.coverage import (
    BenefitCategory,
    BenefitDetails,
    CostSharing,
    CoverageCreate,
    CoverageRecord,
    CoverageUpdate,
    LimitationRule,
    LimitationRules,
    MemberRecord,
    PriorAuthRules,
    is_in_force,
)
from eligibility_service.schemas.eligibility import (
    BenefitInformation,
    CacheStatistics,
    CoverageLimitation,
    CoverageVerificationRequest,
    CoverageVerificationResponse,
    EligibilityRequest,
    EligibilityResponse,
    RequestStatistics,
    ResponseMessage,
    ServiceStats,
    ServiceVerification,
)

__all__ = [
    # Coverage documents and records
    "BenefitCategory",
    "BenefitDetails",
    "CostSharing",
    "LimitationRule",
    "LimitationRules",
    "PriorAuthRules",
    "MemberRecord",
    "CoverageRecord",
    "CoverageCreate",
    "CoverageUpdate",
    "is_in_force",
    # Eligibility
    "EligibilityRequest",
    "EligibilityResponse",
    "BenefitInformation",
    "CoverageLimitation",
    "ResponseMessage",
    # Verification
    "CoverageVerificationRequest",
    "CoverageVerificationResponse",
    "ServiceVerification",
    # Statistics
    "CacheStatistics",
    "RequestStatistics",
    "ServiceStats",
]
