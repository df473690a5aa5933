"""
SQLAlchemy Models for the Eligibility Service.

This module exports all database models for the application.
"""

from eligibility_service.models.base import Base, StringIDModel, TimeStampedModel
from eligibility_service.models.coverage import Coverage
from eligibility_service.models.member import Member

__all__ = [
    "Base",
    "StringIDModel",
    "TimeStampedModel",
    "Coverage",
    "Member",
]
