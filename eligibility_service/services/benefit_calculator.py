"""
Benefit and Limitation Calculation.

Turns a coverage record plus the requested service codes into benefit and
limitation projections, a prior authorization decision and per-service cost
estimates.

Every function in this module is pure: no I/O, no clock reads unless the
caller leaves ``as_of`` unset, and identical inputs always give identical
outputs.

Prior authorization is a placeholder policy driven by each coverage's own
rule document; it is not a clinical rule engine.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from eligibility_service.core.enums import (
    CoverageType,
    LimitationPeriod,
    LimitationType,
    PlaceOfService,
    ServiceCoverageStatus,
)
from eligibility_service.schemas.coverage import (
    BenefitCategory,
    CoverageRecord,
    LimitationRule,
    PriorAuthRules,
)
from eligibility_service.schemas.eligibility import (
    BenefitInformation,
    CoverageLimitation,
    ServiceVerification,
)
from eligibility_service.services.provider_network import ProviderNetworkDirectory
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0")
DEFAULT_ANNUAL_MAXIMUM = Decimal("5000.00")

# Reason codes on ServiceVerification
REASON_EXCLUDED = "SERVICE_EXCLUDED"
REASON_PRIOR_AUTH = "PRIOR_AUTH_REQUIRED"
REASON_OUT_OF_NETWORK = "OUT_OF_NETWORK"


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _remaining(limit: Decimal, used: Decimal) -> Decimal:
    return _money(max(ZERO, limit - used))


def _matches(scoped_codes: list[str], service_codes: list[str]) -> bool:
    """Unscoped entries always apply; scoped ones need a requested code."""
    if not scoped_codes or not service_codes:
        return True
    return not set(scoped_codes).isdisjoint(service_codes)


# =============================================================================
# Fee Schedule
# =============================================================================


class FeeSchedule:
    """
    Allowed amounts by CPT code.

    Unknown codes fall back to a flat default. Facility places of service
    are paid at a discounted rate.
    """

    DEFAULT_ALLOWED_AMOUNT = Decimal("150.00")
    FACILITY_DISCOUNT = Decimal("0.85")

    # Demo rates (2024 Medicare-like)
    DEFAULT_RATES: dict[str, Decimal] = {
        # E&M - Office visits
        "99202": Decimal("75.00"),
        "99203": Decimal("110.00"),
        "99204": Decimal("170.00"),
        "99205": Decimal("215.00"),
        "99211": Decimal("25.00"),
        "99212": Decimal("50.00"),
        "99213": Decimal("80.00"),
        "99214": Decimal("120.00"),
        "99215": Decimal("175.00"),
        # Consultations
        "99242": Decimal("110.00"),
        "99243": Decimal("160.00"),
        "99244": Decimal("215.00"),
        "99245": Decimal("280.00"),
        # Emergency
        "99283": Decimal("100.00"),
        "99284": Decimal("175.00"),
        "99285": Decimal("275.00"),
        # Lab
        "80053": Decimal("25.00"),
        "85025": Decimal("12.00"),
        # Imaging
        "71046": Decimal("45.00"),
        "70450": Decimal("250.00"),
        "70551": Decimal("475.00"),
        "72148": Decimal("500.00"),
    }

    def __init__(
        self,
        rates: Mapping[str, Decimal] | None = None,
        default_amount: Decimal = DEFAULT_ALLOWED_AMOUNT,
    ):
        self._rates = dict(self.DEFAULT_RATES if rates is None else rates)
        self.default_amount = default_amount

    def allowed_amount(self, service_code: str, place_of_service: Optional[str] = None) -> Decimal:
        amount = self._rates.get(service_code, self.default_amount)
        if _is_facility(place_of_service):
            amount = amount * self.FACILITY_DISCOUNT
        return _money(amount)


def _is_facility(place_of_service: Optional[str]) -> bool:
    if not place_of_service:
        return False
    try:
        return PlaceOfService(place_of_service).is_facility
    except ValueError:
        return False


DEFAULT_FEE_SCHEDULE = FeeSchedule()


# =============================================================================
# Predicates
# =============================================================================


def is_provider_in_network(
    provider_id: str,
    network: Optional[str],
    directory: Optional[ProviderNetworkDirectory] = None,
) -> bool:
    """
    Network participation check.

    A coverage without a network, or with a network the directory does not
    know, does not restrict providers.
    """
    if directory is None or not directory.knows(network):
        return True
    return directory.is_member(network, provider_id)


def requires_prior_auth(
    service_codes: Iterable[str],
    auth_rules: PriorAuthRules | Mapping[str, Any] | None,
) -> bool:
    """
    True if any requested code matches an entry of the coverage's rule set.

    Accepted rule document shapes (combinable)::

        {"codes": ["99245", "99244"]}
        {"rules": [{"code": "99245"}, {"codes": [...], "required": true},
                   {"prefix": "7055"}]}
        {"99245": true, "99244": {"required": true}}
    """
    if isinstance(auth_rules, PriorAuthRules):
        document = auth_rules.root
    else:
        document = dict(auth_rules or {})
    codes = [code for code in service_codes if code]
    if not document or not codes:
        return False

    exact, prefixes = _compile_auth_rules(document)
    return any(code in exact or code.startswith(prefixes) for code in codes)


def _compile_auth_rules(document: Mapping[str, Any]) -> tuple[frozenset[str], tuple[str, ...]]:
    exact: set[str] = set()
    prefixes: list[str] = []

    for key, value in document.items():
        if key == "codes":
            if isinstance(value, list):
                exact.update(str(code) for code in value)
            else:
                logger.warning(f"Ignoring prior auth 'codes' entry of type {type(value).__name__}")
        elif key == "rules":
            if not isinstance(value, list):
                logger.warning(f"Ignoring prior auth 'rules' entry of type {type(value).__name__}")
                continue
            for rule in value:
                if not isinstance(rule, Mapping):
                    logger.warning(f"Ignoring prior auth rule {rule!r}")
                    continue
                if not rule.get("required", True):
                    continue
                if rule.get("code"):
                    exact.add(str(rule["code"]))
                if isinstance(rule.get("codes"), list):
                    exact.update(str(code) for code in rule["codes"])
                if rule.get("prefix"):
                    prefixes.append(str(rule["prefix"]))
        elif isinstance(value, bool):
            if value:
                exact.add(key)
        elif isinstance(value, Mapping):
            if value.get("required", False):
                exact.add(key)
        else:
            logger.warning(f"Ignoring prior auth entry {key!r} of type {type(value).__name__}")

    return frozenset(exact), tuple(prefixes)


# =============================================================================
# Benefits
# =============================================================================


def _default_category(coverage: CoverageRecord) -> BenefitCategory:
    return BenefitCategory(service_category=coverage.type or CoverageType.MEDICAL.value)


def applicable_categories(
    coverage: CoverageRecord,
    service_codes: list[str],
) -> list[BenefitCategory]:
    """Benefit categories that apply to the requested codes, in document order."""
    categories = [
        category
        for category in coverage.benefit_details.categories
        if _matches(category.service_codes, service_codes)
    ]
    return categories or [_default_category(coverage)]


def _coinsurance(coverage: CoverageRecord, category: BenefitCategory, in_network: bool) -> Decimal:
    if not in_network:
        return coverage.cost_sharing.out_of_network_coinsurance_rate
    if category.coinsurance_rate is not None:
        return category.coinsurance_rate
    return coverage.cost_sharing.coinsurance_rate


def _benefit_for_category(
    coverage: CoverageRecord,
    category: BenefitCategory,
    in_network: bool,
    prior_auth: bool,
) -> BenefitInformation:
    plan = coverage.cost_sharing

    def pick(name: str) -> Any:
        override = getattr(category, name)
        return getattr(plan, name) if override is None else override

    deductible = pick("deductible_amount")
    deductible_met_amount = pick("deductible_met_amount")
    oop_max = pick("out_of_pocket_max")

    return BenefitInformation(
        service_category=category.service_category,
        in_network=in_network,
        copay_amount=_money(pick("copay_amount")),
        coinsurance_rate=_coinsurance(coverage, category, in_network),
        deductible_amount=_money(deductible),
        deductible_met=deductible_met_amount >= deductible,
        remaining_deductible=_remaining(deductible, deductible_met_amount),
        out_of_pocket_max=_money(oop_max),
        remaining_oop_max=_remaining(oop_max, pick("out_of_pocket_met")),
        prior_auth_required=prior_auth or category.prior_auth_required,
        coverage_level=pick("coverage_level"),
    )


def calculate_benefits(
    coverage: CoverageRecord,
    service_codes: list[str],
    provider_id: str,
    directory: Optional[ProviderNetworkDirectory] = None,
    rule_engine_enabled: bool = True,
) -> list[BenefitInformation]:
    """
    Benefit projection of one coverage.

    Args:
        coverage: In-force coverage
        service_codes: Requested CPT/HCPCS codes (may be empty)
        provider_id: Rendering provider
        directory: Provider network directory
        rule_engine_enabled: Evaluate the prior authorization rules

    Returns:
        One entry per applicable benefit category
    """
    in_network = is_provider_in_network(provider_id, coverage.network, directory)
    prior_auth = rule_engine_enabled and requires_prior_auth(
        service_codes, coverage.prior_auth_rules
    )
    return [
        _benefit_for_category(coverage, category, in_network, prior_auth)
        for category in applicable_categories(coverage, service_codes)
    ]


# =============================================================================
# Limitations
# =============================================================================


def next_reset_date(period: LimitationPeriod, as_of: date) -> str:
    """ISO date the counter resets, empty for lifetime limits."""
    if period == LimitationPeriod.ANNUAL:
        return date(as_of.year + 1, 1, 1).isoformat()
    if period == LimitationPeriod.MONTHLY:
        if as_of.month == 12:
            return date(as_of.year + 1, 1, 1).isoformat()
        return date(as_of.year, as_of.month + 1, 1).isoformat()
    return ""


def calculate_limitations(
    coverage: CoverageRecord,
    service_codes: list[str],
    as_of: Optional[date] = None,
) -> list[CoverageLimitation]:
    """Limitation projection of one coverage as of a date (default today, UTC)."""
    as_of = as_of or datetime.now(timezone.utc).date()
    rules = [
        rule
        for rule in coverage.limitations.rules
        if _matches(rule.service_codes, service_codes)
    ]
    if not coverage.limitations.rules:
        rules = [
            LimitationRule(
                limitation_type=LimitationType.ANNUAL_MAXIMUM,
                limit_value=DEFAULT_ANNUAL_MAXIMUM,
            )
        ]

    default_category = coverage.type or CoverageType.MEDICAL.value
    return [
        CoverageLimitation(
            service_category=rule.service_category or default_category,
            limitation_type=rule.limitation_type,
            limit_value=_money(rule.limit_value),
            used_amount=_money(rule.used_amount),
            remaining_amount=_remaining(rule.limit_value, rule.used_amount),
            period=rule.period.value,
            reset_date=next_reset_date(rule.period, as_of),
        )
        for rule in rules
    ]


# =============================================================================
# Service Verification
# =============================================================================


def verify_service(
    coverage: CoverageRecord,
    service_code: str,
    provider_id: str,
    place_of_service: Optional[str] = None,
    directory: Optional[ProviderNetworkDirectory] = None,
    fee_schedule: Optional[FeeSchedule] = None,
    rule_engine_enabled: bool = True,
) -> ServiceVerification:
    """Point-in-time coverage and cost estimate for a single service code."""
    fee_schedule = fee_schedule or DEFAULT_FEE_SCHEDULE
    estimated_cost = fee_schedule.allowed_amount(service_code, place_of_service)

    if service_code in coverage.benefit_details.excluded_service_codes:
        return ServiceVerification(
            service_code=service_code,
            status=ServiceCoverageStatus.NOT_COVERED,
            coverage_level=ZERO,
            estimated_cost=estimated_cost,
            patient_cost=estimated_cost,
            auth_required=False,
            reason_codes=[REASON_EXCLUDED],
        )

    category = applicable_categories(coverage, [service_code])[0]
    in_network = is_provider_in_network(provider_id, coverage.network, directory)
    coinsurance = _coinsurance(coverage, category, in_network)
    auth_required = category.prior_auth_required or (
        rule_engine_enabled
        and requires_prior_auth([service_code], coverage.prior_auth_rules)
    )

    reason_codes = []
    if auth_required:
        reason_codes.append(REASON_PRIOR_AUTH)
    if not in_network:
        reason_codes.append(REASON_OUT_OF_NETWORK)

    return ServiceVerification(
        service_code=service_code,
        status=(
            ServiceCoverageStatus.REQUIRES_AUTH
            if auth_required
            else ServiceCoverageStatus.COVERED
        ),
        coverage_level=Decimal("1") - coinsurance,
        estimated_cost=estimated_cost,
        patient_cost=_money(estimated_cost * coinsurance),
        auth_required=auth_required,
        reason_codes=reason_codes,
    )
