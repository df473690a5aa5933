"""
Unit Tests for the Audit Trail Emitter.

The Kafka producer is replaced with a mock; nothing is sent over the network.
"""

from unittest.mock import MagicMock

import pytest
from kafka.errors import KafkaError, NoBrokersAvailable

from eligibility_service.api.config import Settings
from eligibility_service.services import audit as audit_module
from eligibility_service.services.audit import (
    AuditEvent,
    AuditEventType,
    KafkaAuditEmitter,
    LoggingAuditEmitter,
    NullAuditEmitter,
    create_audit_emitter,
)


@pytest.fixture
def producer() -> MagicMock:
    return MagicMock()


@pytest.mark.unit
class TestKafkaAuditEmitter:
    @pytest.mark.asyncio
    async def test_event_is_sent_keyed_by_id(self, producer):
        emitter = KafkaAuditEmitter(["broker:9092"], topic="audit.test", producer=producer)

        await emitter.record(
            AuditEventType.ELIGIBILITY_CHECK,
            {"member_id": "M1", "eligible": True},
            user_id="u1",
            client_ip="10.0.0.1",
        )

        producer.send.assert_called_once()
        args, kwargs = producer.send.call_args
        assert args == ("audit.test",)
        value = kwargs["value"]
        assert kwargs["key"] == value["event_id"]
        assert value["event_type"] == "eligibility.check"
        assert value["user_id"] == "u1"
        assert value["client_ip"] == "10.0.0.1"
        assert value["service"] == "eligibility-service"
        assert value["data"] == {"member_id": "M1", "eligible": True}
        producer.send.return_value.add_errback.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_failure_is_swallowed(self, producer):
        producer.send.side_effect = KafkaError("queue full")
        emitter = KafkaAuditEmitter(["broker:9092"], producer=producer)

        await emitter.record(AuditEventType.COVERAGE_LOOKUP, {"member_id": "M1"})

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_swallowed(self, producer):
        producer.send.side_effect = RuntimeError("boom")
        emitter = KafkaAuditEmitter(["broker:9092"], producer=producer)

        await emitter.record(AuditEventType.COVERAGE_LOOKUP, {"member_id": "M1"})

    @pytest.mark.asyncio
    async def test_close_flushes_producer(self, producer):
        emitter = KafkaAuditEmitter(["broker:9092"], producer=producer)

        await emitter.close()

        producer.flush.assert_called_once_with(5)
        producer.close.assert_called_once_with(5)

    def test_delivery_error_callback(self):
        KafkaAuditEmitter._on_send_error("evt-1", KafkaError("timed out"))


@pytest.mark.unit
class TestEmitters:
    @pytest.mark.asyncio
    async def test_logging_emitter(self):
        emitter = LoggingAuditEmitter(service_name="eligibility-test")
        await emitter.emit(AuditEvent(event_type=AuditEventType.CACHE_CLEAR))

    @pytest.mark.asyncio
    async def test_null_emitter(self):
        await NullAuditEmitter().record(AuditEventType.CACHE_CLEAR, {})

    def test_event_defaults(self):
        event = AuditEvent(event_type=AuditEventType.COVERAGE_VERIFY)
        assert event.event_id
        assert event.timestamp.tzinfo is not None
        assert event.data == {}


@pytest.mark.unit
class TestCreateAuditEmitter:
    def test_disabled(self):
        assert isinstance(create_audit_emitter(Settings(AUDIT_ENABLED=False)), NullAuditEmitter)

    def test_without_brokers_logs(self):
        emitter = create_audit_emitter(Settings(KAFKA_BROKERS=[], SERVICE_NAME="svc"))
        assert isinstance(emitter, LoggingAuditEmitter)
        assert emitter.service_name == "svc"

    def test_with_brokers(self, monkeypatch):
        factory = MagicMock()
        monkeypatch.setattr(audit_module, "KafkaProducer", factory)

        emitter = create_audit_emitter(
            Settings(KAFKA_BROKERS=["b1:9092", "b2:9092"], KAFKA_AUDIT_TOPIC="audit.x")
        )

        assert isinstance(emitter, KafkaAuditEmitter)
        assert emitter.topic == "audit.x"
        assert factory.call_args.kwargs["bootstrap_servers"] == ["b1:9092", "b2:9092"]
        assert factory.call_args.kwargs["acks"] == "all"

    def test_unreachable_brokers_fall_back_to_log(self, monkeypatch):
        monkeypatch.setattr(audit_module, "KafkaProducer", MagicMock(side_effect=NoBrokersAvailable()))

        emitter = create_audit_emitter(Settings(KAFKA_BROKERS=["nowhere:9092"]))

        assert isinstance(emitter, LoggingAuditEmitter)
