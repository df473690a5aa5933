"""
Coverage Store Accessor.

Date-filtered reads of members and coverages from the relational store, and
the plain writes behind the coverage admin endpoints. No business logic
lives here.

Failure handling:
- connection or transport errors raise ``StoreUnavailableError``
- a malformed JSON document on a row is logged at WARNING and replaced by
  the empty default, so one bad row never fails a request
- a row whose columns do not fit the record type (unknown status or type)
  is skipped in listings; a single-row read raises ``StoreUnavailableError``
"""

import json
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eligibility_service.core.enums import CoverageStatus, MemberStatus
from eligibility_service.models.coverage import Coverage
from eligibility_service.models.member import Member
from eligibility_service.schemas.coverage import (
    BenefitDetails,
    CostSharing,
    CoverageCreate,
    CoverageRecord,
    LimitationRules,
    MemberRecord,
    PriorAuthRules,
)
from eligibility_service.services.metrics import DATABASE_QUERIES, MetricsCollector
from eligibility_service.utils.errors import BlobDecodeError, StoreUnavailableError
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)

DocumentT = TypeVar("DocumentT", bound=BaseModel)

# Coverage columns holding JSON documents, and their decoded types
COVERAGE_DOCUMENTS: dict[str, type[BaseModel]] = {
    "benefit_details": BenefitDetails,
    "cost_sharing": CostSharing,
    "prior_auth_rules": PriorAuthRules,
    "limitations": LimitationRules,
}


# =============================================================================
# Document decoding
# =============================================================================


def decode_document(raw: Optional[str], model: type[DocumentT], field: str, record_id: str) -> DocumentT:
    """
    Decode one stored JSON document.

    Raises:
        BlobDecodeError: The text is not JSON or does not fit the document type
    """
    if raw is None or not raw.strip():
        return model()
    try:
        return model.model_validate(json.loads(raw))
    except ValueError as e:
        raise BlobDecodeError(field, record_id, e) from e


def _document_or_default(raw: Optional[str], model: type[DocumentT], field: str, record_id: str) -> DocumentT:
    try:
        return decode_document(raw, model, field, record_id)
    except BlobDecodeError as e:
        logger.warning(f"{e.message}; using empty default")
        return model()


def _mapping_or_default(raw: Optional[str], field: str, record_id: str) -> dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except ValueError as e:
        logger.warning(f"{BlobDecodeError(field, record_id, e).message}; using empty default")
        return {}
    if not isinstance(value, dict):
        logger.warning(f"Member {record_id} {field} document is not an object; using empty default")
        return {}
    return value


def encode_document(document: BaseModel) -> str:
    return json.dumps(document.model_dump(mode="json", exclude_none=True))


def member_to_record(row: Member) -> MemberRecord:
    return MemberRecord(
        id=row.id,
        identifier=row.identifier,
        name=_mapping_or_default(row.name, "name", row.id),
        birth_date=row.birth_date,
        gender=row.gender,
        contact_info=_mapping_or_default(row.contact_info, "contact_info", row.id),
        address=_mapping_or_default(row.address, "address", row.id),
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def coverage_to_record(row: Coverage) -> CoverageRecord:
    documents = {
        field: _document_or_default(getattr(row, field), model, field, row.id)
        for field, model in COVERAGE_DOCUMENTS.items()
    }
    return CoverageRecord(
        id=row.id,
        member_id=row.member_id,
        payer_id=row.payer_id,
        policy_number=row.policy_number,
        group_number=row.group_number,
        status=row.status,
        type=row.type,
        effective_date=row.effective_date,
        expiration_date=row.expiration_date,
        network=row.network,
        created_at=row.created_at,
        updated_at=row.updated_at,
        **documents,
    )


def readable_coverages(rows: Iterable[Coverage], operation: str) -> list[CoverageRecord]:
    """Convert rows, skipping any that do not fit CoverageRecord."""
    records = []
    for row in rows:
        try:
            records.append(coverage_to_record(row))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable coverage {row.id} during {operation}: {e}")
    return records


def _apply_payload(row: Coverage, payload: CoverageCreate) -> None:
    row.member_id = payload.member_id
    row.payer_id = payload.payer_id
    row.policy_number = payload.policy_number
    row.group_number = payload.group_number
    row.status = CoverageStatus(payload.status).value
    row.type = payload.type
    row.effective_date = payload.effective_date
    row.expiration_date = payload.expiration_date
    row.network = payload.network
    for field in COVERAGE_DOCUMENTS:
        setattr(row, field, encode_document(getattr(payload, field)))


# =============================================================================
# Store
# =============================================================================


class CoverageStore:
    """Reads and writes members and coverages through an async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metrics: MetricsCollector | None = None,
    ):
        self._session_factory = session_factory
        self._metrics = metrics

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session and translate driver failures and unreadable rows."""
        if self._metrics is not None:
            self._metrics.increment(DATABASE_QUERIES, tags={"operation": operation})
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Coverage store error during {operation}: {e}")
            raise StoreUnavailableError(operation, e) from e
        except ValidationError as e:
            logger.error(f"Unreadable row during {operation}: {e}")
            raise StoreUnavailableError(operation, e) from e

    # =========================================================================
    # Read path
    # =========================================================================

    async def fetch_member(self, member_id: str) -> Optional[MemberRecord]:
        """Active member by national identifier, or None."""
        async with self._session("fetch_member") as session:
            result = await session.execute(
                select(Member).where(
                    Member.identifier == member_id,
                    Member.status == MemberStatus.ACTIVE.value,
                )
            )
            row = result.scalar_one_or_none()
            return member_to_record(row) if row is not None else None

    async def fetch_coverages(self, member_id: str, service_date: date) -> list[CoverageRecord]:
        """
        Coverages in force on a date, newest effective date first.

        Args:
            member_id: Member national ID
            service_date: Date of service

        Returns:
            In-force coverages (possibly empty)
        """
        async with self._session("fetch_coverages") as session:
            result = await session.execute(
                select(Coverage)
                .where(
                    Coverage.member_id == member_id,
                    Coverage.status == CoverageStatus.ACTIVE.value,
                    Coverage.effective_date <= service_date,
                    or_(
                        Coverage.expiration_date.is_(None),
                        Coverage.expiration_date >= service_date,
                    ),
                )
                .order_by(Coverage.effective_date.desc())
            )
            return readable_coverages(result.scalars().all(), "fetch_coverages")

    # =========================================================================
    # Admin path
    # =========================================================================

    async def get_coverage(self, coverage_id: str) -> Optional[CoverageRecord]:
        async with self._session("get_coverage") as session:
            row = await session.get(Coverage, coverage_id)
            return coverage_to_record(row) if row is not None else None

    async def search_coverages(
        self,
        member_id: Optional[str] = None,
        payer_id: Optional[str] = None,
        status: Optional[str] = None,
        effective_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CoverageRecord]:
        """Filtered coverage listing, newest first."""
        query = select(Coverage)
        if member_id:
            query = query.where(Coverage.member_id == member_id)
        if payer_id:
            query = query.where(Coverage.payer_id == payer_id)
        if status:
            query = query.where(Coverage.status == status)
        if effective_date:
            query = query.where(Coverage.effective_date <= effective_date)
        query = query.order_by(Coverage.created_at.desc()).limit(limit).offset(offset)

        async with self._session("search_coverages") as session:
            result = await session.execute(query)
            return readable_coverages(result.scalars().all(), "search_coverages")

    async def insert_coverage(self, payload: CoverageCreate) -> CoverageRecord:
        async with self._session("insert_coverage") as session:
            row = Coverage()
            _apply_payload(row, payload)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info(f"Created coverage {row.id} for member {row.member_id}")
            return coverage_to_record(row)

    async def update_coverage(
        self, coverage_id: str, payload: CoverageCreate
    ) -> Optional[tuple[str, CoverageRecord]]:
        """
        Replace a coverage's fields.

        Returns:
            (previous member ID, updated record), or None if the coverage does not exist
        """
        async with self._session("update_coverage") as session:
            row = await session.get(Coverage, coverage_id)
            if row is None:
                return None
            previous_member_id = row.member_id
            _apply_payload(row, payload)
            await session.commit()
            await session.refresh(row)
            logger.info(f"Updated coverage {coverage_id}")
            return previous_member_id, coverage_to_record(row)

    async def soft_delete_coverage(self, coverage_id: str) -> Optional[CoverageRecord]:
        """Mark a coverage deleted. None if missing or already deleted."""
        async with self._session("soft_delete_coverage") as session:
            result = await session.execute(
                select(Coverage).where(
                    Coverage.id == coverage_id,
                    Coverage.status != CoverageStatus.DELETED.value,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            row.status = CoverageStatus.DELETED.value
            await session.commit()
            await session.refresh(row)
            logger.info(f"Soft-deleted coverage {coverage_id}")
            return coverage_to_record(row)
