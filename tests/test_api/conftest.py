"""
Fixtures for API tests.

The application is built with ``create_app`` and its service dependencies
are replaced through ``app.dependency_overrides``; the lifespan never runs,
so no database, Redis or Kafka connection is opened.
"""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from eligibility_service.api.config import Settings
from eligibility_service.api.deps import (
    get_audit_emitter,
    get_cache_manager,
    get_coverage_admin,
    get_dependency_status,
    get_eligibility_engine,
    get_metrics,
)
from eligibility_service.api.main import create_app
from eligibility_service.services.coverage_admin import CoverageAdminService
from eligibility_service.services.eligibility_engine import EligibilityEngine


@pytest.fixture
def dependency_state() -> dict[str, bool]:
    """Mutable reachability reported by the health checks."""
    return {"database": True, "redis": True}


@pytest.fixture
def make_client(store, cache, audit, metrics, directory, dependency_state) -> Callable[[Settings], TestClient]:
    """Build a client for a given Settings instance."""

    def _make(settings: Settings) -> TestClient:
        app = create_app(settings)
        engine = EligibilityEngine(store, cache, audit, metrics, directory, settings)
        admin = CoverageAdminService(store, cache, audit)

        app.dependency_overrides[get_eligibility_engine] = lambda: engine
        app.dependency_overrides[get_coverage_admin] = lambda: admin
        app.dependency_overrides[get_cache_manager] = lambda: cache
        app.dependency_overrides[get_metrics] = lambda: metrics
        app.dependency_overrides[get_audit_emitter] = lambda: audit
        app.dependency_overrides[get_dependency_status] = lambda: dict(dependency_state)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, settings) -> TestClient:
    return make_client(settings)


@pytest.fixture
def enrolled(store, coverage_factory):
    """M1 with one open-ended medical coverage effective 2025-01-01."""
    store.add_member("M1")
    return store.add_coverage(coverage_factory())
