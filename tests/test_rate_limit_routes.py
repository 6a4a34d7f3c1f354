"""Tests for the rate limit HTTP surface.

Configuration:
- conftest.py selects the in-memory counter store and a limit of 5 per 60s
- the process-wide limiter is reset before each test
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.core import rate_limit
from app.core.config import settings
from app.core.errors import CounterStoreError
from app.core.rate_limit import get_counter_store, get_rate_limiter
from app.main import app

CHECK_BODY = {
    "resource": "https://example.com",
    "client_id": "client1",
    "user_id": "user1",
}


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def failing_store() -> AsyncMock:
    store = AsyncMock(spec=AbstractCounterStore)
    store.backend_name = "redis"
    failure = CounterStoreError(code="counter_store_unavailable", message="Redis exists failed")
    store.exists.side_effect = failure
    store.set_if_absent.side_effect = failure
    store.ping.return_value = False
    return store


@pytest.fixture
def clear_overrides():
    yield
    app.dependency_overrides.clear()


class TestCheckEndpoint:
    """POST /v1/rate-limit/check"""

    def test_first_check_is_admitted(self, client: TestClient) -> None:
        response = client.post("/v1/rate-limit/check", json=CHECK_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is True
        assert data["outcome"] == "admit"
        assert data["count"] == 1
        assert data["remaining"] == 4
        assert data["limit"] == 5
        assert data["window_seconds"] == 60.0

    def test_sixth_check_is_denied(self, client: TestClient) -> None:
        decisions = [
            client.post("/v1/rate-limit/check", json=CHECK_BODY).json()["allowed"]
            for _ in range(6)
        ]

        assert decisions == [True, True, True, True, True, False]

    def test_denial_still_answers_200(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)
        client.post("/v1/rate-limit/check", json=CHECK_BODY)

        response = client.post("/v1/rate-limit/check", json=CHECK_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is False
        assert data["outcome"] == "deny"
        assert data["count"] == 2
        assert data["remaining"] == 0

    def test_distinct_tuples_have_separate_windows(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)

        client.post("/v1/rate-limit/check", json=CHECK_BODY)
        other = dict(CHECK_BODY, user_id="user2")
        response = client.post("/v1/rate-limit/check", json=other)

        assert response.json()["allowed"] is True

    def test_store_failure_is_reported_as_error(
        self, client: TestClient, failing_store: AsyncMock, clear_overrides
    ) -> None:
        app.dependency_overrides[get_rate_limiter] = lambda: FixedWindowRateLimiter(
            failing_store, timedelta(minutes=1), 5
        )

        response = client.post("/v1/rate-limit/check", json=CHECK_BODY)

        assert response.status_code == 200
        data = response.json()
        assert data["allowed"] is False
        assert data["outcome"] == "error"
        assert data["count"] is None

    def test_missing_field_is_rejected(self, client: TestClient) -> None:
        response = client.post("/v1/rate-limit/check", json={"resource": "/r", "client_id": "c"})

        assert response.status_code == 422

    def test_empty_strings_are_accepted(self, client: TestClient) -> None:
        response = client.post(
            "/v1/rate-limit/check",
            json={"resource": "", "client_id": "", "user_id": ""},
        )

        assert response.status_code == 200
        assert response.json()["allowed"] is True


class TestGuardedEndpoint:
    """GET /v1/rate-limit/guarded is protected by enforce_rate_limit."""

    HEADERS = {"X-Client-ID": "client1", "X-User-ID": "user1"}

    def test_throttles_after_limit(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 2)

        assert client.get("/v1/rate-limit/guarded", headers=self.HEADERS).status_code == 200
        assert client.get("/v1/rate-limit/guarded", headers=self.HEADERS).status_code == 200
        response = client.get("/v1/rate-limit/guarded", headers=self.HEADERS)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["detail"] == "Rate limit exceeded. Try again later."

    def test_headers_can_be_disabled(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)
        monkeypatch.setattr(settings.app, "rate_limit_include_headers", False)

        client.get("/v1/rate-limit/guarded", headers=self.HEADERS)
        response = client.get("/v1/rate-limit/guarded", headers=self.HEADERS)

        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_users_are_counted_separately(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)

        assert client.get("/v1/rate-limit/guarded", headers=self.HEADERS).status_code == 200
        other = {"X-Client-ID": "client1", "X-User-ID": "user2"}
        assert client.get("/v1/rate-limit/guarded", headers=other).status_code == 200

    def test_missing_headers_share_the_anonymous_window(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)

        assert client.get("/v1/rate-limit/guarded").status_code == 200
        assert client.get("/v1/rate-limit/guarded").status_code == 429

        store = get_counter_store()
        assert store.get_count("rate_limit:anonymous:anonymous:/v1/rate-limit/guarded") == 2

    def test_disabled_limiter_never_throttles(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "rate_limit_requests", 1)
        monkeypatch.setattr(settings.app, "rate_limit_enabled", False)

        for _ in range(3):
            assert client.get("/v1/rate-limit/guarded", headers=self.HEADERS).status_code == 200

    def test_store_failure_denies_by_default(
        self, client: TestClient, monkeypatch, failing_store: AsyncMock
    ) -> None:
        monkeypatch.setattr(rate_limit, "create_counter_store", lambda: failing_store)

        response = client.get("/v1/rate-limit/guarded", headers=self.HEADERS)

        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit could not be verified. Try again later."
        assert "X-RateLimit-Remaining" not in response.headers

    def test_store_failure_admits_when_fail_open(
        self, client: TestClient, monkeypatch, failing_store: AsyncMock
    ) -> None:
        monkeypatch.setattr(rate_limit, "create_counter_store", lambda: failing_store)
        monkeypatch.setattr(settings.app, "rate_limit_fail_open", True)

        response = client.get("/v1/rate-limit/guarded", headers=self.HEADERS)

        assert response.status_code == 200


class TestHealthEndpoints:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readiness_with_memory_backend(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "backend": "memory"}

    def test_readiness_reports_unreachable_store(
        self, client: TestClient, failing_store: AsyncMock, clear_overrides
    ) -> None:
        app.dependency_overrides[get_counter_store] = lambda: failing_store

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "unavailable", "backend": "redis"}
