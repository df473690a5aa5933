"""
Coverage Administration Service.

Search, create, update and soft delete of coverage records. Every write
invalidates the cached projections of the affected member so the next read
recomputes from the store.
"""

from datetime import date
from typing import Optional

from eligibility_service.schemas.coverage import CoverageCreate, CoverageRecord, CoverageUpdate
from eligibility_service.services.audit import AuditEmitter, AuditEventType
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.coverage_store import CoverageStore
from eligibility_service.utils.errors import CoverageNotFoundError
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def clamp_page_size(count: Optional[int]) -> int:
    """Page size limited to 1..100, default 20."""
    if count is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(MAX_PAGE_SIZE, count))


class CoverageAdminService:
    """Coverage CRUD with cache invalidation and audit."""

    def __init__(self, store: CoverageStore, cache: CacheManager, audit: AuditEmitter):
        self._store = store
        self._cache = cache
        self._audit = audit

    async def _invalidate_member(self, member_id: str) -> int:
        deleted = await self._cache.delete_pattern(CacheManager.pattern_for_member(member_id))
        logger.debug(f"Invalidated {deleted} cached entries for member {member_id}")
        return deleted

    async def search(
        self,
        member_id: Optional[str] = None,
        payer_id: Optional[str] = None,
        status: Optional[str] = None,
        effective_date: Optional[date] = None,
        count: Optional[int] = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> list[CoverageRecord]:
        limit = clamp_page_size(count)
        offset = max(0, offset)
        coverages = await self._store.search_coverages(
            member_id=member_id,
            payer_id=payer_id,
            status=status,
            effective_date=effective_date,
            limit=limit,
            offset=offset,
        )
        await self._audit.record(
            AuditEventType.COVERAGE_SEARCH,
            {
                "filters": {
                    "member_id": member_id or "",
                    "payer_id": payer_id or "",
                    "status": status or "",
                    "effective_date": effective_date.isoformat() if effective_date else "",
                },
                "result_count": len(coverages),
                "offset": offset,
                "limit": limit,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return coverages

    async def get(self, coverage_id: str) -> CoverageRecord:
        """
        Raises:
            CoverageNotFoundError: No coverage with this ID
        """
        coverage = await self._store.get_coverage(coverage_id)
        if coverage is None:
            raise CoverageNotFoundError(coverage_id)
        return coverage

    async def create(
        self,
        payload: CoverageCreate,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> CoverageRecord:
        coverage = await self._store.insert_coverage(payload)
        await self._invalidate_member(coverage.member_id)
        await self._audit.record(
            AuditEventType.COVERAGE_CREATE,
            {
                "coverage_id": coverage.id,
                "member_id": coverage.member_id,
                "payer_id": coverage.payer_id,
                "status": coverage.status.value,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return coverage

    async def update(
        self,
        coverage_id: str,
        payload: CoverageUpdate,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> CoverageRecord:
        """
        Replace a coverage.

        Both the previous and the new member lose their cached projections
        when the coverage moves between members.
        """
        result = await self._store.update_coverage(coverage_id, payload)
        if result is None:
            raise CoverageNotFoundError(coverage_id)
        previous_member_id, coverage = result

        await self._invalidate_member(coverage.member_id)
        if previous_member_id != coverage.member_id:
            await self._invalidate_member(previous_member_id)

        await self._audit.record(
            AuditEventType.COVERAGE_UPDATE,
            {
                "coverage_id": coverage_id,
                "member_id": coverage.member_id,
                "previous_member_id": previous_member_id,
                "status": coverage.status.value,
            },
            user_id=user_id,
            client_ip=client_ip,
        )
        return coverage

    async def delete(
        self,
        coverage_id: str,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> None:
        """
        Soft delete a coverage.

        Raises:
            CoverageNotFoundError: Missing or already deleted
        """
        coverage = await self._store.soft_delete_coverage(coverage_id)
        if coverage is None:
            raise CoverageNotFoundError(coverage_id)

        await self._invalidate_member(coverage.member_id)
        await self._cache.delete_pattern(CacheManager.pattern_for_coverage(coverage_id))

        await self._audit.record(
            AuditEventType.COVERAGE_DELETE,
            {"coverage_id": coverage_id, "member_id": coverage.member_id},
            user_id=user_id,
            client_ip=client_ip,
        )
