"""
Eligibility Engine.

Orchestrates the coverage store, the benefit calculator and the cache into
eligibility, coverage, benefit and verification answers.

Read path per request::

    CHECK_CACHE -> HIT: decorate and return
                -> MISS: fetch member -> fetch coverage -> compute
                         -> store in cache -> emit audit -> return

"Member not found" and "no coverage" are successful answers with
``eligible=false``, not errors. Store failures propagate as
``StoreUnavailableError``; cache and audit failures never reach the caller.
"""

import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError

from eligibility_service.api.config import Settings
from eligibility_service.core.enums import (
    CoverageStatus,
    EligibilityOutcome,
    MessageType,
    VerificationOutcome,
)
from eligibility_service.schemas.coverage import CoverageRecord
from eligibility_service.schemas.eligibility import (
    BenefitInformation,
    CoverageLimitation,
    CoverageVerificationRequest,
    CoverageVerificationResponse,
    EligibilityRequest,
    EligibilityResponse,
    ResponseMessage,
)
from eligibility_service.services.audit import AuditEmitter, AuditEventType
from eligibility_service.services.benefit_calculator import (
    FeeSchedule,
    calculate_benefits,
    calculate_limitations,
    verify_service,
)
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.coverage_store import CoverageStore
from eligibility_service.services.metrics import (
    CACHE_HITS,
    CACHE_MISSES,
    ELIGIBILITY_CHECKS,
    REQUEST_DURATION,
    SLA_BREACHES,
    MetricsCollector,
)
from eligibility_service.services.provider_network import ProviderNetworkDirectory
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

# Message codes
MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
NO_ACTIVE_COVERAGE = "NO_ACTIVE_COVERAGE"
COVERAGE_STATUS_WARNING = "COVERAGE_STATUS_WARNING"
NO_COVERAGE_FOUND = "NO_COVERAGE_FOUND"
NO_BENEFITS_FOUND = "NO_BENEFITS_FOUND"

ALL_CATEGORIES = "all"


class CacheKeys:
    """Cache key scheme. The three namespaces never collide."""

    @staticmethod
    def eligibility(member_id: str, provider_id: str, service_date: date) -> str:
        return f"eligibility:{member_id}:{provider_id}:{service_date.isoformat()}"

    @staticmethod
    def coverage(member_id: str, effective_date: date) -> str:
        return f"coverage:{member_id}:{effective_date.isoformat()}"

    @staticmethod
    def benefits(member_id: str, service_category: Optional[str]) -> str:
        return f"benefits:{member_id}:{service_category or ALL_CATEGORIES}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EligibilityEngine:
    """Cache-aside eligibility decisions with SLA accounting."""

    def __init__(
        self,
        store: CoverageStore,
        cache: CacheManager,
        audit: AuditEmitter,
        metrics: MetricsCollector,
        directory: ProviderNetworkDirectory,
        settings: Settings,
        fee_schedule: FeeSchedule | None = None,
    ):
        self._store = store
        self._cache = cache
        self._audit = audit
        self._metrics = metrics
        self._directory = directory
        self._settings = settings
        self._fee_schedule = fee_schedule or FeeSchedule()

    # =========================================================================
    # Eligibility check
    # =========================================================================

    async def check_eligibility(
        self,
        request: EligibilityRequest,
        client_ip: Optional[str] = None,
    ) -> EligibilityResponse:
        """
        Decide whether the member is covered on the service date.

        Args:
            request: Eligibility request (request_id generated when empty)
            client_ip: Caller address for the audit trail

        Returns:
            EligibilityResponse, with ``cache_hit`` set when served from cache

        Raises:
            StoreUnavailableError: The coverage store could not be reached
        """
        start = time.perf_counter()
        request = request.model_copy(
            update={
                "request_id": request.request_id or str(uuid4()),
                "request_time": _now(),
            }
        )
        self._metrics.increment(ELIGIBILITY_CHECKS)

        key = CacheKeys.eligibility(request.member_id, request.provider_id, request.service_date)
        response = self._decode_cached_response(key, await self._cache.get_json(key))

        if response is not None:
            self._metrics.increment(CACHE_HITS)
            response.cache_hit = True
        else:
            self._metrics.increment(CACHE_MISSES)
            response = await self._determine_eligibility(request)
            await self._cache.set_json(
                key, response.model_dump(mode="json"), self._settings.CACHE_TTL
            )

        response.request_id = request.request_id
        response.response_time = _now()

        duration_ms = (time.perf_counter() - start) * 1000
        await self._audit.record(
            AuditEventType.ELIGIBILITY_CHECK,
            {
                "request_id": request.request_id,
                "member_id": request.member_id,
                "provider_id": request.provider_id,
                "service_date": request.service_date.isoformat(),
                "eligible": response.eligible,
                "cache_hit": response.cache_hit,
                "duration_ms": round(duration_ms, 3),
            },
            user_id=request.requested_by,
            client_ip=client_ip,
        )
        self._record_duration(request.request_id, duration_ms)
        return response

    def _decode_cached_response(self, key: str, cached: Any) -> Optional[EligibilityResponse]:
        if cached is None:
            return None
        try:
            return EligibilityResponse.model_validate(cached)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached eligibility response {key}: {e}")
            return None

    def _record_duration(self, request_id: str, duration_ms: float) -> None:
        self._metrics.record_time(REQUEST_DURATION, duration_ms)
        if duration_ms > self._settings.MAX_RESPONSE_TIME_MS:
            self._metrics.increment(SLA_BREACHES)
            logger.warning(
                f"Eligibility check {request_id} exceeded response time budget: "
                f"{duration_ms:.1f}ms > {self._settings.MAX_RESPONSE_TIME_MS}ms"
            )

    async def _determine_eligibility(self, request: EligibilityRequest) -> EligibilityResponse:
        member = await self._store.fetch_member(request.member_id)
        if member is None:
            return EligibilityResponse(
                member_id=request.member_id,
                eligible=False,
                coverage_status=EligibilityOutcome.MEMBER_NOT_FOUND.value,
                messages=[
                    ResponseMessage(
                        type=MessageType.ERROR,
                        code=MEMBER_NOT_FOUND,
                        message="Member not found in the system",
                    )
                ],
            )

        coverages = await self._store.fetch_coverages(request.member_id, request.service_date)

        in_force: list[CoverageRecord] = []
        benefits: list[BenefitInformation] = []
        limitations: list[CoverageLimitation] = []
        messages: list[ResponseMessage] = []

        for coverage in coverages:
            if coverage.status != CoverageStatus.ACTIVE:
                # Stale row; the store query only returns active coverage
                messages.append(
                    ResponseMessage(
                        type=MessageType.WARNING,
                        code=COVERAGE_STATUS_WARNING,
                        message=f"Coverage status is {coverage.status.value}",
                        details=coverage.id,
                    )
                )
                continue
            if not coverage.is_in_force(request.service_date):
                continue

            in_force.append(coverage)
            benefits.extend(
                calculate_benefits(
                    coverage,
                    request.service_codes,
                    request.provider_id,
                    directory=self._directory,
                    rule_engine_enabled=self._settings.ENABLE_RULE_ENGINE,
                )
            )
            limitations.extend(
                calculate_limitations(coverage, request.service_codes, as_of=request.service_date)
            )

        if not in_force:
            messages.append(
                ResponseMessage(
                    type=MessageType.INFORMATION,
                    code=NO_ACTIVE_COVERAGE,
                    message="No active coverage found for the specified date",
                )
            )
            return EligibilityResponse(
                member_id=request.member_id,
                eligible=False,
                coverage_status=EligibilityOutcome.NO_COVERAGE.value,
                messages=messages,
            )

        # Top-level dates describe the primary (most recently effective) coverage
        primary = in_force[0]
        return EligibilityResponse(
            member_id=request.member_id,
            eligible=True,
            coverage_status=EligibilityOutcome.ACTIVE.value,
            effective_date=primary.effective_date.isoformat(),
            expiration_date=primary.expiration_date.isoformat() if primary.expiration_date else "",
            benefits=benefits,
            limitations=limitations,
            messages=messages,
        )

    # =========================================================================
    # Coverage and benefit listings
    # =========================================================================

    async def get_member_coverage(
        self,
        member_id: str,
        effective_date: Optional[date] = None,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> list[CoverageRecord]:
        """In-force coverages of a member on a date (default today)."""
        effective_date = effective_date or _now().date()
        key = CacheKeys.coverage(member_id, effective_date)

        coverages = self._decode_cached_list(key, await self._cache.get_json(key), CoverageRecord)
        cache_hit = coverages is not None
        if cache_hit:
            self._metrics.increment(CACHE_HITS)
        else:
            self._metrics.increment(CACHE_MISSES)
            coverages = [
                coverage
                for coverage in await self._store.fetch_coverages(member_id, effective_date)
                if coverage.is_in_force(effective_date)
            ]
            await self._cache.set_json(
                key,
                [coverage.model_dump(mode="json") for coverage in coverages],
                self._settings.CACHE_TTL,
            )

        await self._audit.record(
            AuditEventType.COVERAGE_LOOKUP,
            {
                "member_id": member_id,
                "effective_date": effective_date.isoformat(),
                "result_count": len(coverages),
                "cache_hit": cache_hit,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return coverages

    async def get_member_benefits(
        self,
        member_id: str,
        service_category: Optional[str] = None,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> list[BenefitInformation]:
        """
        In-network benefit schedule of a member's coverage in force today.

        Args:
            member_id: Member national ID
            service_category: Only return this category

        Returns:
            Benefit entries, empty when nothing applies
        """
        key = CacheKeys.benefits(member_id, service_category)

        benefits = self._decode_cached_list(key, await self._cache.get_json(key), BenefitInformation)
        cache_hit = benefits is not None
        if cache_hit:
            self._metrics.increment(CACHE_HITS)
        else:
            self._metrics.increment(CACHE_MISSES)
            today = _now().date()
            benefits = []
            for coverage in await self._store.fetch_coverages(member_id, today):
                if not coverage.is_in_force(today):
                    continue
                # No provider given: report the in-network schedule
                benefits.extend(
                    calculate_benefits(
                        coverage,
                        [],
                        "",
                        rule_engine_enabled=self._settings.ENABLE_RULE_ENGINE,
                    )
                )
            if service_category:
                benefits = [b for b in benefits if b.service_category == service_category]
            await self._cache.set_json(
                key,
                [benefit.model_dump(mode="json") for benefit in benefits],
                self._settings.CACHE_TTL,
            )

        await self._audit.record(
            AuditEventType.BENEFITS_LOOKUP,
            {
                "member_id": member_id,
                "service_category": service_category or ALL_CATEGORIES,
                "result_count": len(benefits),
                "cache_hit": cache_hit,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return benefits

    @staticmethod
    def _decode_cached_list(key: str, cached: Any, model: type) -> Optional[list]:
        if cached is None:
            return None
        if not isinstance(cached, list):
            logger.warning(f"Discarding cache entry {key}: expected a list")
            return None
        try:
            return [model.model_validate(item) for item in cached]
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    # =========================================================================
    # Coverage verification
    # =========================================================================

    async def verify_coverage(
        self,
        member_id: str,
        request: CoverageVerificationRequest,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> CoverageVerificationResponse:
        """
        Per-service coverage and cost estimate. Always recomputed, never cached.

        The result is advisory and carries a ``valid_until`` timestamp.
        """
        in_force = [
            coverage
            for coverage in await self._store.fetch_coverages(member_id, request.service_date)
            if coverage.is_in_force(request.service_date)
        ]

        services = []
        messages = []
        if in_force:
            primary = in_force[0]
            services = [
                verify_service(
                    primary,
                    code,
                    request.provider_id,
                    request.place_of_service,
                    directory=self._directory,
                    fee_schedule=self._fee_schedule,
                    rule_engine_enabled=self._settings.ENABLE_RULE_ENGINE,
                )
                for code in request.service_codes
            ]
            overall_status = VerificationOutcome.COVERED
        else:
            overall_status = VerificationOutcome.NOT_COVERED
            messages.append(
                ResponseMessage(
                    type=MessageType.INFORMATION,
                    code=NO_ACTIVE_COVERAGE,
                    message="No active coverage found for the specified date",
                )
            )

        computed_at = _now()
        response = CoverageVerificationResponse(
            member_id=member_id,
            verification_id=str(uuid4()),
            service_date=request.service_date,
            services=services,
            overall_status=overall_status,
            auth_required=any(service.auth_required for service in services),
            messages=messages,
            valid_until=computed_at + timedelta(hours=self._settings.VERIFICATION_VALIDITY_HOURS),
        )

        await self._audit.record(
            AuditEventType.COVERAGE_VERIFY,
            {
                "verification_id": response.verification_id,
                "member_id": member_id,
                "service_date": request.service_date.isoformat(),
                "service_codes": request.service_codes,
                "overall_status": overall_status.value,
                "auth_required": response.auth_required,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return response
