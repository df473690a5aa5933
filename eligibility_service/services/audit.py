"""
Audit Trail Emitter.

Every eligibility, coverage and benefit lookup and every coverage write emits
an audit event. Emission is best effort: failures are logged and never reach
the caller.

Events go to the Kafka audit topic when brokers are configured, otherwise
they are written to the structured log.
"""

import asyncio
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from kafka import KafkaProducer
from kafka.errors import KafkaError
from pydantic import BaseModel, Field

from eligibility_service.api.config import Settings
from eligibility_service.utils.logging import get_logger

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Audit event types published by this service."""

    ELIGIBILITY_CHECK = "eligibility.check"
    COVERAGE_LOOKUP = "coverage.lookup"
    BENEFITS_LOOKUP = "benefits.lookup"
    COVERAGE_VERIFY = "coverage.verify"
    COVERAGE_CREATE = "coverage.create"
    COVERAGE_UPDATE = "coverage.update"
    COVERAGE_SEARCH = "coverage.search"
    COVERAGE_DELETE = "coverage.delete"
    CACHE_CLEAR = "cache.clear"


class AuditEvent(BaseModel):
    """Audit trail record."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: AuditEventType
    user_id: Optional[str] = None
    client_ip: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    service: str = "eligibility-service"
    data: dict[str, Any] = Field(default_factory=dict)


class AuditEmitter:
    """Audit sink interface."""

    service_name: str = "eligibility-service"

    async def emit(self, event: AuditEvent) -> None:
        raise NotImplementedError

    async def record(
        self,
        event_type: AuditEventType,
        data: dict[str, Any],
        user_id: str | None = None,
        client_ip: str | None = None,
    ) -> None:
        """Build and emit an event. Never raises."""
        try:
            event = AuditEvent(
                event_type=event_type,
                user_id=user_id or None,
                client_ip=client_ip,
                service=self.service_name,
                data=data,
            )
            await self.emit(event)
        except Exception as e:  # audit must never fail a request
            logger.error(f"Failed to emit audit event {event_type.value}: {e}")

    async def close(self) -> None:
        return None


class LoggingAuditEmitter(AuditEmitter):
    """Writes audit events to the structured log."""

    def __init__(self, service_name: str = "eligibility-service"):
        self.service_name = service_name
        self._log = logger.bind(audit=True)

    async def emit(self, event: AuditEvent) -> None:
        self._log.info(
            f"AUDIT {event.event_type.value}",
            audit_event=event.model_dump(mode="json"),
        )


class KafkaAuditEmitter(AuditEmitter):
    """Publishes audit events to a Kafka topic with bounded retries."""

    def __init__(
        self,
        bootstrap_servers: list[str],
        topic: str = "audit.trail.v1",
        service_name: str = "eligibility-service",
        retries: int = 3,
        producer: KafkaProducer | None = None,
    ):
        self.topic = topic
        self.service_name = service_name
        self._producer = producer or KafkaProducer(
            bootstrap_servers=bootstrap_servers,
            value_serializer=lambda x: json.dumps(x).encode("utf-8"),
            key_serializer=lambda x: x.encode("utf-8") if x else None,
            acks="all",
            retries=retries,
            linger_ms=10,
            max_block_ms=1000,
        )
        logger.info(f"Kafka audit producer ready for topic {topic}")

    async def emit(self, event: AuditEvent) -> None:
        # send() only enqueues; delivery outcome is reported on the future
        try:
            future = await asyncio.to_thread(
                self._producer.send,
                self.topic,
                value=event.model_dump(mode="json"),
                key=event.event_id,
            )
        except KafkaError as e:
            logger.error(f"Kafka error queueing audit event {event.event_id}: {e}")
            return
        future.add_errback(self._on_send_error, event.event_id)

    @staticmethod
    def _on_send_error(event_id: str, exc: Exception) -> None:
        logger.error(f"Audit event {event_id} not delivered: {exc}")

    async def close(self) -> None:
        try:
            await asyncio.to_thread(self._producer.flush, 5)
            await asyncio.to_thread(self._producer.close, 5)
        except KafkaError as e:
            logger.warning(f"Kafka audit producer did not close cleanly: {e}")
        logger.info("Kafka audit producer stopped")


class NullAuditEmitter(AuditEmitter):
    """Discards events (audit disabled)."""

    async def emit(self, event: AuditEvent) -> None:
        return None


# =============================================================================
# Factory Functions
# =============================================================================


def create_audit_emitter(settings: Settings) -> AuditEmitter:
    """Kafka when brokers are configured, structured log otherwise."""
    if not settings.AUDIT_ENABLED:
        return NullAuditEmitter()
    if settings.KAFKA_BROKERS:
        try:
            return KafkaAuditEmitter(
                settings.KAFKA_BROKERS,
                topic=settings.KAFKA_AUDIT_TOPIC,
                service_name=settings.SERVICE_NAME,
                retries=settings.KAFKA_SEND_RETRIES,
            )
        except KafkaError as e:
            logger.warning(f"Kafka unavailable ({e}); audit events go to the log")
    return LoggingAuditEmitter(service_name=settings.SERVICE_NAME)
