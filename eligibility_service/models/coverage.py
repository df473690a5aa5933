"""
Coverage Model.

One row per coverage (FHIR Coverage resource plus the business documents the
eligibility engine reads). A member may hold several coverages at once.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eligibility_service.core.enums import CoverageStatus, CoverageType
from eligibility_service.models.base import Base, StringIDModel, TimeStampedModel


class Coverage(Base, StringIDModel, TimeStampedModel):
    """Coverage record for a single member."""

    __tablename__ = "coverage"

    member_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Member national ID",
    )
    payer_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Payer identifier",
    )
    policy_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Policy number",
    )
    group_number: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Group/employer number",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=CoverageStatus.ACTIVE.value,
        nullable=False,
        comment="active, cancelled, draft, entered-in-error, deleted",
    )
    type: Mapped[str] = mapped_column(
        String(30),
        default=CoverageType.MEDICAL.value,
        nullable=False,
        comment="medical, dental, vision, ...",
    )
    effective_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First day of coverage",
    )
    expiration_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Last day of coverage (open-ended when NULL)",
    )

    # Business documents (JSON text, decoded by the coverage store)
    benefit_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_sharing: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    network: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Provider network identifier",
    )
    prior_auth_rules: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    limitations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_coverage_member_status_effective", "member_id", "status", "effective_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Coverage(id={self.id}, member_id='{self.member_id}', "
            f"status='{self.status}', effective={self.effective_date})>"
        )
