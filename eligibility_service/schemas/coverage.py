"""
Pydantic Schemas for Members, Coverage and Coverage Documents.

Coverage rows carry four JSON documents. Three of them have a known shape and
are modelled here (benefit details, cost sharing, limitations). The prior
authorization rule set is open-ended and is kept as an opaque document that
is interpreted only where it is evaluated.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    RootModel,
    field_validator,
    model_validator,
)

from eligibility_service.core.enums import (
    CoverageLevel,
    CoverageStatus,
    CoverageType,
    LimitationPeriod,
    LimitationType,
    MemberStatus,
)

# Decimal internally, JSON number on the wire
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]
Rate = Annotated[
    Decimal,
    Field(ge=0, le=1),
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


# =============================================================================
# Coverage Documents
# =============================================================================


class CostSharing(BaseModel):
    """Plan-level cost sharing. An empty document yields the plan defaults."""

    model_config = ConfigDict(extra="ignore")

    copay_amount: Money = Field(default=Decimal("25.00"), ge=0)
    coinsurance_rate: Rate = Decimal("0.20")
    out_of_network_coinsurance_rate: Rate = Decimal("0.40")
    deductible_amount: Money = Field(default=Decimal("500.00"), ge=0)
    deductible_met_amount: Money = Field(default=Decimal("0"), ge=0)
    out_of_pocket_max: Money = Field(default=Decimal("2000.00"), ge=0)
    out_of_pocket_met: Money = Field(default=Decimal("0"), ge=0)
    coverage_level: CoverageLevel = CoverageLevel.INDIVIDUAL


class BenefitCategory(BaseModel):
    """Benefit override for one service category. Unset fields fall back to cost sharing."""

    model_config = ConfigDict(extra="ignore")

    service_category: str = Field(..., min_length=1)
    service_codes: list[str] = Field(default_factory=list)
    copay_amount: Optional[Money] = None
    coinsurance_rate: Optional[Rate] = None
    deductible_amount: Optional[Money] = None
    deductible_met_amount: Optional[Money] = None
    out_of_pocket_max: Optional[Money] = None
    out_of_pocket_met: Optional[Money] = None
    coverage_level: Optional[CoverageLevel] = None
    prior_auth_required: bool = False


class BenefitDetails(BaseModel):
    """Benefit schedule of a coverage."""

    model_config = ConfigDict(extra="ignore")

    plan_name: Optional[str] = None
    categories: list[BenefitCategory] = Field(default_factory=list)
    excluded_service_codes: list[str] = Field(default_factory=list)


class LimitationRule(BaseModel):
    """A single limit on a service category."""

    model_config = ConfigDict(extra="ignore")

    service_category: Optional[str] = None
    service_codes: list[str] = Field(default_factory=list)
    limitation_type: LimitationType = LimitationType.ANNUAL_MAXIMUM
    limit_value: Money = Field(..., ge=0)
    used_amount: Money = Field(default=Decimal("0"), ge=0)
    period: Optional[LimitationPeriod] = None

    @model_validator(mode="after")
    def default_period(self) -> "LimitationRule":
        """Lifetime maximums never reset; everything else resets yearly unless stated."""
        if self.period is None:
            self.period = (
                LimitationPeriod.LIFETIME
                if self.limitation_type == LimitationType.LIFETIME_MAXIMUM
                else LimitationPeriod.ANNUAL
            )
        return self


class LimitationRules(BaseModel):
    """Limitation rule set of a coverage."""

    model_config = ConfigDict(extra="ignore")

    rules: list[LimitationRule] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data: Any) -> Any:
        """Older rows store the rules as a top-level array."""
        if isinstance(data, list):
            return {"rules": data}
        return data


class PriorAuthRules(RootModel[dict[str, Any]]):
    """
    Opaque prior authorization rule document.

    The shape is owned by the payer configuration tooling; it is only
    interpreted by the prior authorization predicate.
    """

    root: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Store Records
# =============================================================================


class MemberRecord(BaseModel):
    """Member as read from the store."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    identifier: str
    name: dict[str, Any] = Field(default_factory=dict)
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    contact_info: dict[str, Any] = Field(default_factory=dict)
    address: dict[str, Any] = Field(default_factory=dict)
    status: MemberStatus = MemberStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CoverageRecord(BaseModel):
    """Coverage with its documents decoded."""

    id: str
    member_id: str
    payer_id: str
    policy_number: Optional[str] = None
    group_number: Optional[str] = None
    status: CoverageStatus = CoverageStatus.ACTIVE
    type: str = CoverageType.MEDICAL.value
    effective_date: date
    expiration_date: Optional[date] = None
    benefit_details: BenefitDetails = Field(default_factory=BenefitDetails)
    cost_sharing: CostSharing = Field(default_factory=CostSharing)
    network: Optional[str] = None
    prior_auth_rules: PriorAuthRules = Field(default_factory=PriorAuthRules)
    limitations: LimitationRules = Field(default_factory=LimitationRules)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_in_force(self, service_date: date) -> bool:
        """Active, started on or before the service date and not yet expired."""
        return is_in_force(
            self.status, self.effective_date, self.expiration_date, service_date
        )


def is_in_force(
    status: CoverageStatus | str,
    effective_date: date,
    expiration_date: Optional[date],
    service_date: date,
) -> bool:
    """Coverage in-force predicate shared by the store query and the engine."""
    if CoverageStatus(status) != CoverageStatus.ACTIVE:
        return False
    if effective_date > service_date:
        return False
    return expiration_date is None or expiration_date >= service_date


# =============================================================================
# Admin Payloads
# =============================================================================


class CoverageBase(BaseModel):
    """Writable coverage fields."""

    policy_number: Optional[str] = Field(None, max_length=50)
    group_number: Optional[str] = Field(None, max_length=50)
    type: str = Field(default=CoverageType.MEDICAL.value, max_length=30)
    network: Optional[str] = Field(None, max_length=50)
    benefit_details: BenefitDetails = Field(default_factory=BenefitDetails)
    cost_sharing: CostSharing = Field(default_factory=CostSharing)
    prior_auth_rules: PriorAuthRules = Field(default_factory=PriorAuthRules)
    limitations: LimitationRules = Field(default_factory=LimitationRules)


class CoverageCreate(CoverageBase):
    """Payload for creating a coverage."""

    member_id: str = Field(..., min_length=1, max_length=50)
    payer_id: str = Field(..., min_length=1, max_length=50)
    status: CoverageStatus = CoverageStatus.ACTIVE
    effective_date: date
    expiration_date: Optional[date] = None

    @field_validator("expiration_date")
    @classmethod
    def expiration_after_effective(cls, v: Optional[date], info) -> Optional[date]:
        """Ensure expiration date is on or after effective date."""
        if v is None:
            return v
        effective = info.data.get("effective_date")
        if effective and v < effective:
            raise ValueError("Expiration date must be on or after effective date")
        return v


class CoverageUpdate(CoverageCreate):
    """Full replacement payload for an existing coverage."""

    pass
