"""
Member Model.

Members are owned by the enrollment system; this service only reads them.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eligibility_service.core.enums import MemberStatus
from eligibility_service.models.base import Base, StringIDModel, TimeStampedModel


class Member(Base, StringIDModel, TimeStampedModel):
    """
    Insured member (patient).

    Name, contact and address are stored as JSON documents (FHIR HumanName,
    ContactPoint and Address shapes) and decoded by the coverage store.
    """

    __tablename__ = "members"

    identifier: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="National ID",
    )
    name: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="FHIR HumanName document (JSON)",
    )
    birth_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Date of birth",
    )
    gender: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Administrative gender",
    )
    contact_info: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Contact points document (JSON)",
    )
    address: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Address document (JSON)",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=MemberStatus.ACTIVE.value,
        nullable=False,
        comment="Enrollment status",
    )

    __table_args__ = (
        Index("ix_members_identifier_status", "identifier", "status"),
    )

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, identifier='{self.identifier}', status='{self.status}')>"
