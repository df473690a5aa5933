"""API tests for admin, health and metrics routes."""

import pytest

from eligibility_service.services.audit import AuditEventType

CHECK_BODY = {"member_id": "M1", "provider_id": "P1", "service_date": "2025-08-13"}


@pytest.mark.api
class TestServiceStats:
    def test_stats_after_traffic(self, client, enrolled):
        client.post("/api/v1/eligibility/check", json=CHECK_BODY)
        client.post("/api/v1/eligibility/check", json=CHECK_BODY)

        response = client.get("/api/v1/admin/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["service"] == "eligibility-service"
        assert body["request_stats"]["total_requests"] == 2
        assert body["cache_stats"]["total_hits"] == 1
        assert body["cache_stats"]["hit_rate"] == 0.5
        assert body["cache_stats"]["cached_entries"] == 1
        assert body["dependencies"] == {"database": True, "redis": True}

    def test_cache_stats_without_redis(self, client, fake_redis):
        fake_redis.fail = True

        body = client.get("/api/v1/admin/cache/stats").json()

        assert body["cached_entries"] is None
        assert body["hit_rate"] == 0.0


@pytest.mark.api
class TestCacheClear:
    def test_clear(self, client, enrolled, fake_redis, audit):
        client.post("/api/v1/eligibility/check", json=CHECK_BODY)
        assert fake_redis.data

        response = client.post("/api/v1/admin/cache/clear")

        assert response.status_code == 200
        assert response.json() == {"message": "Cache cleared successfully", "status": "success"}
        assert fake_redis.data == {}
        assert len(audit.of_type(AuditEventType.CACHE_CLEAR)) == 1

    def test_clear_failure(self, client, fake_redis):
        fake_redis.fail = True

        response = client.post("/api/v1/admin/cache/clear")

        assert response.status_code == 500
        assert response.json()["code"] == "CACHE_CLEAR_FAILED"


@pytest.mark.api
class TestHealth:
    def test_healthy(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": "healthy", "redis": "healthy"}
        assert body["uptime_seconds"] >= 0

    def test_dependency_down(self, client, dependency_state):
        dependency_state["redis"] = False

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["redis"] == "unhealthy"

    def test_ready(self, client, dependency_state):
        assert client.get("/ready").json()["ready"] is True

        dependency_state["database"] = False
        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["dependencies"]["database"] == "not ready"

    def test_root(self, client):
        assert client.get("/").json()["name"] == "eligibility-service"


@pytest.mark.api
class TestMetricsEndpoint:
    def test_prometheus_text(self, client, enrolled):
        client.post("/api/v1/eligibility/check", json=CHECK_BODY)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "eligibility_checks_total 1" in response.text
        assert "eligibility_request_duration_ms_count 1" in response.text

    def test_disabled(self, make_client, settings):
        client = make_client(settings.model_copy(update={"METRICS_ENABLED": False}))
        assert client.get("/metrics").status_code == 404
