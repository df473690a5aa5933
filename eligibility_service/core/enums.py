"""
Core Enumerations for the Eligibility Service.
"""

from enum import Enum


# =============================================================================
# Store Enums
# =============================================================================


class MemberStatus(str, Enum):
    """Member enrollment status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class CoverageStatus(str, Enum):
    """Coverage record status (FHIR Coverage.status plus soft delete)."""

    ACTIVE = "active"
    CANCELLED = "cancelled"
    DRAFT = "draft"
    ENTERED_IN_ERROR = "entered-in-error"
    DELETED = "deleted"


class CoverageType(str, Enum):
    """Line of coverage."""

    MEDICAL = "medical"
    DENTAL = "dental"
    VISION = "vision"
    PHARMACY = "pharmacy"
    MENTAL_HEALTH = "mental_health"


# =============================================================================
# Response Enums
# =============================================================================


class EligibilityOutcome(str, Enum):
    """Top-level coverage_status values of an eligibility response."""

    ACTIVE = "active"
    MEMBER_NOT_FOUND = "member_not_found"
    NO_COVERAGE = "no_coverage"


class MessageType(str, Enum):
    """Severity of a response message."""

    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"


class CoverageLevel(str, Enum):
    """Who a benefit accumulates for."""

    INDIVIDUAL = "individual"
    FAMILY = "family"


class LimitationType(str, Enum):
    """Kinds of coverage limitation."""

    ANNUAL_MAXIMUM = "annual_maximum"
    LIFETIME_MAXIMUM = "lifetime_maximum"
    VISIT_LIMIT = "visit_limit"


class LimitationPeriod(str, Enum):
    """Reset period of a limitation."""

    ANNUAL = "annual"
    LIFETIME = "lifetime"
    MONTHLY = "monthly"


class ServiceCoverageStatus(str, Enum):
    """Per-service outcome of a coverage verification."""

    COVERED = "covered"
    NOT_COVERED = "not_covered"
    REQUIRES_AUTH = "requires_auth"


class VerificationOutcome(str, Enum):
    """Overall outcome of a coverage verification."""

    COVERED = "covered"
    NOT_COVERED = "not_covered"


class PlaceOfService(str, Enum):
    """CMS place-of-service codes that change cost estimates."""

    OFFICE = "11"
    HOME = "12"
    INPATIENT_HOSPITAL = "21"
    OUTPATIENT_HOSPITAL = "22"
    EMERGENCY_ROOM = "23"
    AMBULATORY_SURGICAL_CENTER = "24"

    @property
    def is_facility(self) -> bool:
        """Facility settings are priced at the facility rate."""
        return self in {
            PlaceOfService.INPATIENT_HOSPITAL,
            PlaceOfService.OUTPATIENT_HOSPITAL,
            PlaceOfService.EMERGENCY_ROOM,
            PlaceOfService.AMBULATORY_SURGICAL_CENTER,
        }
