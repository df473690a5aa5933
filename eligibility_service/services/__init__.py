"""
Services Layer for the Eligibility Service.

Exports the eligibility engine and the components it is built from.
"""

from eligibility_service.services.audit import (
    AuditEmitter,
    AuditEvent,
    AuditEventType,
    KafkaAuditEmitter,
    LoggingAuditEmitter,
    NullAuditEmitter,
    create_audit_emitter,
)
from eligibility_service.services.benefit_calculator import (
    FeeSchedule,
    calculate_benefits,
    calculate_limitations,
    is_provider_in_network,
    requires_prior_auth,
    verify_service,
)
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.coverage_admin import CoverageAdminService
from eligibility_service.services.coverage_store import CoverageStore
from eligibility_service.services.eligibility_engine import CacheKeys, EligibilityEngine
from eligibility_service.services.metrics import MetricsCollector
from eligibility_service.services.provider_network import ProviderNetworkDirectory

__all__ = [
    # Audit
    "AuditEmitter",
    "AuditEvent",
    "AuditEventType",
    "KafkaAuditEmitter",
    "LoggingAuditEmitter",
    "NullAuditEmitter",
    "create_audit_emitter",
    # Calculator
    "FeeSchedule",
    "calculate_benefits",
    "calculate_limitations",
    "is_provider_in_network",
    "requires_prior_auth",
    "verify_service",
    # Infrastructure
    "CacheManager",
    "CoverageStore",
    "MetricsCollector",
    "ProviderNetworkDirectory",
    # Engine
    "CacheKeys",
    "EligibilityEngine",
    "CoverageAdminService",
]
