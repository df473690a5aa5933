"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.

The eligibility engine is exercised against in-memory stand-ins for Redis,
the coverage store and the audit sink; no external service is needed.
"""

import re
from datetime import date
from typing import Any, Optional
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from eligibility_service.api.config import Settings
from eligibility_service.core.enums import CoverageStatus
from eligibility_service.schemas.coverage import CoverageCreate, CoverageRecord, MemberRecord
from eligibility_service.services.audit import AuditEmitter, AuditEvent
from eligibility_service.services.cache import CacheManager
from eligibility_service.services.eligibility_engine import EligibilityEngine
from eligibility_service.services.metrics import MetricsCollector
from eligibility_service.services.provider_network import ProviderNetworkDirectory
from eligibility_service.utils.errors import StoreUnavailableError


# =============================================================================
# Fakes
# =============================================================================


def _glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a Redis glob (with backslash escapes) to a regex."""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.DOTALL)


class FakeRedis:
    """Subset of ``redis.asyncio.Redis`` used by CacheManager."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False
        self.scan_calls = 0

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis down")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, key: str) -> int:
        self._check()
        return int(key in self.data)

    async def scan_iter(self, match: str = "*"):
        self._check()
        self.scan_calls += 1
        regex = _glob_to_regex(match)
        for key in list(self.data):
            if regex.match(key):
                yield key

    async def flushdb(self) -> bool:
        self._check()
        self.data.clear()
        self.ttls.clear()
        return True

    async def info(self, section: str = "default") -> dict[str, Any]:
        self._check()
        if section == "memory":
            return {"used_memory_human": "1.00M"}
        return {"evicted_keys": 0}

    async def dbsize(self) -> int:
        self._check()
        return len(self.data)

    async def ping(self) -> bool:
        self._check()
        return True


class FakeCoverageStore:
    """In-memory CoverageStore with the same query semantics."""

    def __init__(self):
        self.members: dict[str, MemberRecord] = {}
        self.coverages: dict[str, CoverageRecord] = {}
        self.unavailable = False
        self.calls: dict[str, int] = {}

    def _call(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        if self.unavailable:
            raise StoreUnavailableError(operation, ConnectionRefusedError("db down"))

    def add_member(self, identifier: str, status: str = "active") -> MemberRecord:
        member = MemberRecord(id=str(uuid4()), identifier=identifier, status=status)
        self.members[identifier] = member
        return member

    def add_coverage(self, coverage: CoverageRecord) -> CoverageRecord:
        self.coverages[coverage.id] = coverage
        return coverage

    async def fetch_member(self, member_id: str) -> Optional[MemberRecord]:
        self._call("fetch_member")
        member = self.members.get(member_id)
        if member is None or member.status != "active":
            return None
        return member

    async def fetch_coverages(self, member_id: str, service_date: date) -> list[CoverageRecord]:
        self._call("fetch_coverages")
        matches = [
            c
            for c in self.coverages.values()
            if c.member_id == member_id
            and c.status == CoverageStatus.ACTIVE
            and c.effective_date <= service_date
            and (c.expiration_date is None or c.expiration_date >= service_date)
        ]
        return sorted(matches, key=lambda c: c.effective_date, reverse=True)

    async def get_coverage(self, coverage_id: str) -> Optional[CoverageRecord]:
        self._call("get_coverage")
        return self.coverages.get(coverage_id)

    async def search_coverages(self, member_id=None, payer_id=None, status=None,
                               effective_date=None, limit=20, offset=0) -> list[CoverageRecord]:
        self._call("search_coverages")
        results = [
            c
            for c in self.coverages.values()
            if (not member_id or c.member_id == member_id)
            and (not payer_id or c.payer_id == payer_id)
            and (not status or c.status.value == status)
            and (not effective_date or c.effective_date <= effective_date)
        ]
        return results[offset:offset + limit]

    async def insert_coverage(self, payload: CoverageCreate) -> CoverageRecord:
        self._call("insert_coverage")
        coverage = CoverageRecord(id=str(uuid4()), **payload.model_dump())
        self.coverages[coverage.id] = coverage
        return coverage

    async def update_coverage(self, coverage_id: str, payload: CoverageCreate):
        self._call("update_coverage")
        existing = self.coverages.get(coverage_id)
        if existing is None:
            return None
        updated = CoverageRecord(id=coverage_id, **payload.model_dump())
        self.coverages[coverage_id] = updated
        return existing.member_id, updated

    async def soft_delete_coverage(self, coverage_id: str) -> Optional[CoverageRecord]:
        self._call("soft_delete_coverage")
        existing = self.coverages.get(coverage_id)
        if existing is None or existing.status == CoverageStatus.DELETED:
            return None
        deleted = existing.model_copy(update={"status": CoverageStatus.DELETED})
        self.coverages[coverage_id] = deleted
        return deleted


class RecordingAuditEmitter(AuditEmitter):
    """Keeps emitted events for assertions."""

    def __init__(self, fail: bool = False):
        self.events: list[AuditEvent] = []
        self.fail = fail

    async def emit(self, event: AuditEvent) -> None:
        if self.fail:
            raise RuntimeError("audit sink down")
        self.events.append(event)

    def of_type(self, event_type) -> list[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]


# =============================================================================
# Builders
# =============================================================================


def make_coverage(**overrides: Any) -> CoverageRecord:
    """Active open-ended medical coverage effective 2025-01-01 for M1."""
    fields: dict[str, Any] = {
        "id": str(uuid4()),
        "member_id": "M1",
        "payer_id": "PAYER-1",
        "status": "active",
        "type": "medical",
        "effective_date": date(2025, 1, 1),
        "expiration_date": None,
    }
    fields.update(overrides)
    return CoverageRecord.model_validate(fields)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def coverage_factory():
    """Builder for CoverageRecord test data."""
    return make_coverage


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="testing",
        CACHE_TTL=300,
        MAX_RESPONSE_TIME_MS=900,
        HARD_TIMEOUT_ENABLED=False,
        ENABLE_RULE_ENGINE=True,
        KAFKA_BROKERS=[],
        PROVIDER_NETWORKS={"NET-A": ["P1", "P2"]},
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheManager:
    return CacheManager(fake_redis, default_ttl=300)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def audit() -> RecordingAuditEmitter:
    return RecordingAuditEmitter()


@pytest.fixture
def failing_audit() -> RecordingAuditEmitter:
    return RecordingAuditEmitter(fail=True)


@pytest.fixture
def store() -> FakeCoverageStore:
    return FakeCoverageStore()


@pytest.fixture
def directory(settings: Settings) -> ProviderNetworkDirectory:
    return ProviderNetworkDirectory(settings.PROVIDER_NETWORKS)


@pytest.fixture
def engine(store, cache, audit, metrics, directory, settings) -> EligibilityEngine:
    return EligibilityEngine(store, cache, audit, metrics, directory, settings)


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "api: mark test as an API test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
