"""API tests for eligibility routes.

Covers the happy paths and the error contract: negative outcomes are 200
answers, store outages 503, exhausted response budgets 504, malformed
requests 422.
"""

import asyncio

import pytest

from eligibility_service.api.config import get_settings
from eligibility_service.services.audit import AuditEventType

CHECK_URL = "/api/v1/eligibility/check"

CHECK_BODY = {
    "member_id": "M1",
    "provider_id": "P1",
    "service_date": "2025-08-13",
    "service_codes": ["99213"],
}


@pytest.mark.api
class TestCheckEligibility:
    def test_eligible(self, client, enrolled):
        response = client.post(CHECK_URL, json=CHECK_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["eligible"] is True
        assert body["coverage_status"] == "active"
        assert body["effective_date"] == "2025-01-01"
        assert body["expiration_date"] == ""
        assert body["cache_hit"] is False
        assert body["request_id"]
        assert body["benefits"][0]["copay_amount"] == 25.0
        assert body["benefits"][0]["coinsurance_rate"] == 0.2

    def test_repeat_is_cache_hit(self, client, enrolled):
        first = client.post(CHECK_URL, json=CHECK_BODY).json()
        second = client.post(CHECK_URL, json=CHECK_BODY).json()

        assert second["cache_hit"] is True
        assert second["benefits"] == first["benefits"]
        assert second["limitations"] == first["limitations"]

    def test_member_not_found_is_200(self, client):
        response = client.post(CHECK_URL, json={**CHECK_BODY, "member_id": "GHOST"})

        assert response.status_code == 200
        body = response.json()
        assert body["eligible"] is False
        assert body["messages"][0]["code"] == "MEMBER_NOT_FOUND"

    def test_caller_identity_is_audited(self, client, enrolled, audit):
        client.post(
            CHECK_URL,
            json=CHECK_BODY,
            headers={"X-User-ID": "clerk-7", "X-Forwarded-For": "203.0.113.5, 10.0.0.1"},
        )

        event = audit.of_type(AuditEventType.ELIGIBILITY_CHECK)[0]
        assert event.user_id == "clerk-7"
        assert event.client_ip == "203.0.113.5"

    def test_invalid_request(self, client):
        response = client.post(CHECK_URL, json={"provider_id": "P1", "service_date": "13/08/2025"})

        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "error"
        assert body["code"] == "INVALID_REQUEST"
        assert "member_id" in body["details"]

    def test_store_unavailable(self, client, store):
        store.unavailable = True

        response = client.post(CHECK_URL, json=CHECK_BODY)

        assert response.status_code == 503
        assert response.json()["code"] == "STORE_UNAVAILABLE"
        assert response.json()["details"] == "fetch_member"

    def test_cache_outage_is_transparent(self, client, enrolled, fake_redis):
        fake_redis.fail = True

        response = client.post(CHECK_URL, json=CHECK_BODY)

        assert response.status_code == 200
        assert response.json()["eligible"] is True

    def test_hard_timeout_uses_app_settings(self, make_client, settings, store, enrolled, monkeypatch):
        """The budget comes from the settings the app was built with, not the process-wide ones."""
        get_settings.cache_clear()
        monkeypatch.setenv("HARD_TIMEOUT_ENABLED", "false")
        assert get_settings().HARD_TIMEOUT_ENABLED is False
        fetch_member = store.fetch_member

        async def slow_fetch_member(member_id):
            await asyncio.sleep(0.5)
            return await fetch_member(member_id)

        monkeypatch.setattr(store, "fetch_member", slow_fetch_member)
        client = make_client(
            settings.model_copy(update={"HARD_TIMEOUT_ENABLED": True, "MAX_RESPONSE_TIME_MS": 10})
        )

        try:
            response = client.post(CHECK_URL, json=CHECK_BODY)
        finally:
            get_settings.cache_clear()

        assert response.status_code == 504
        assert response.json()["code"] == "ELIGIBILITY_TIMEOUT"


@pytest.mark.api
class TestMemberCoverage:
    def test_listing(self, client, enrolled):
        response = client.get(
            "/api/v1/eligibility/member/M1/coverage", params={"effective_date": "2025-08-13"}
        )

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [enrolled.id]

    def test_no_coverage_is_404(self, client):
        response = client.get(
            "/api/v1/eligibility/member/M9/coverage", params={"effective_date": "2025-08-13"}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NO_COVERAGE_FOUND"
        assert response.json()["type"] == "information"


@pytest.mark.api
class TestMemberBenefits:
    def test_listing(self, client, enrolled):
        response = client.get("/api/v1/eligibility/member/M1/benefits")

        assert response.status_code == 200
        assert response.json()[0]["service_category"] == "medical"

    def test_unknown_category_is_404(self, client, enrolled):
        response = client.get(
            "/api/v1/eligibility/member/M1/benefits", params={"service_category": "dental"}
        )

        assert response.status_code == 404
        assert response.json()["code"] == "NO_BENEFITS_FOUND"


@pytest.mark.api
class TestVerifyCoverage:
    def test_estimates(self, client, enrolled):
        response = client.post(
            "/api/v1/eligibility/member/M1/coverage/verify",
            json={
                "service_date": "2025-08-13",
                "service_codes": ["99213", "00000"],
                "provider_id": "P1",
                "place_of_service": "11",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["overall_status"] == "covered"
        assert body["services"][0]["estimated_cost"] == 80.0
        assert body["services"][1]["patient_cost"] == 30.0
        assert body["valid_until"]
        assert set(body["services"][0]) == {
            "service_code",
            "status",
            "coverage_level",
            "estimated_cost",
            "patient_cost",
            "auth_required",
            "reason_codes",
        }

    def test_requires_service_codes(self, client):
        response = client.post(
            "/api/v1/eligibility/member/M1/coverage/verify",
            json={"service_date": "2025-08-13", "service_codes": [], "provider_id": "P1"},
        )

        assert response.status_code == 422
