"""Tests for the /verifyMyth endpoint.

The counter store and the LLM client are replaced through
``app.dependency_overrides``; everything else (identity, quota gate,
verdict validation, exception handlers, middleware) runs for real.
"""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.quota_store.in_memory import InMemoryQuotaStore
from app.api.deps import get_llm_client, get_quota_store
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.errors import StoreAppError, UpstreamAppError

from conftest import VERDICT, VERDICT_TEXT, FakeLLMClient, gemini_envelope

CALLER = {"x-nf-client-connection-ip": "1.2.3.4"}
CLAIM = {"userQuery": "Los humanos solo usamos el 10% del cerebro."}


@pytest.fixture
def app(store: InMemoryQuotaStore, llm: FakeLLMClient, monkeypatch) -> FastAPI:
    monkeypatch.setattr(settings.app, "daily_quota_limit", 3)
    monkeypatch.setattr(settings.app, "pass_through_mode", "verdict")
    monkeypatch.setattr(settings.app, "quota_include_headers", True)
    application = create_app()
    application.dependency_overrides[get_quota_store] = lambda: store
    application.dependency_overrides[get_llm_client] = lambda: llm
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def _only_count(store: InMemoryQuotaStore) -> int:
    counts = store.snapshot()
    assert len(counts) == 1
    return next(iter(counts.values()))


# ======================== Happy Path ========================


class TestVerifyMyth:
    def test_returns_verdict_byte_for_byte(self, client: TestClient) -> None:
        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.content == VERDICT_TEXT.encode("utf-8")
        assert response.json() == VERDICT

    def test_quota_headers_on_success(self, client: TestClient) -> None:
        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert "X-RateLimit-Reset" in response.headers
        assert "Retry-After" not in response.headers

    def test_quota_headers_can_be_disabled(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "quota_include_headers", False)

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_netlify_path_is_served(self, client: TestClient) -> None:
        response = client.post("/.netlify/functions/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 200

    def test_envelope_pass_through_mode(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.app, "pass_through_mode", "envelope")

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 200
        assert response.json() == gemini_envelope(VERDICT_TEXT)

    def test_claim_is_sent_to_provider(self, client: TestClient, llm: FakeLLMClient) -> None:
        client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert len(llm.calls) == 1
        assert CLAIM["userQuery"] in llm.calls[0]["prompt"]


# ======================== Quota ========================


class TestDailyQuota:
    def test_fourth_request_is_denied(
        self, client: TestClient, store: InMemoryQuotaStore, llm: FakeLLMClient
    ) -> None:
        for _ in range(3):
            assert client.post("/verifyMyth", json=CLAIM, headers=CALLER).status_code == 200

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 429
        assert "3" in response.json()["message"]
        assert response.json()["code"] == "daily_quota_exceeded"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) > 0
        assert _only_count(store) == 3
        assert len(llm.calls) == 3

    def test_denied_requests_do_not_inflate_counter(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        for _ in range(6):
            client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert _only_count(store) == 3

    def test_callers_do_not_share_quota(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        for _ in range(3):
            client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        other = client.post("/verifyMyth", json=CLAIM, headers={"x-nf-client-connection-ip": "5.6.7.8"})

        assert other.status_code == 200
        counts = store.snapshot()
        assert sorted(counts.values()) == [1, 3]

    def test_missing_address_uses_shared_bucket(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        client.post("/verifyMyth", json=CLAIM)

        (key,) = store.snapshot()
        assert key.startswith("unknown_")

    def test_forwarded_for_header_identifies_caller(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        client.post("/verifyMyth", json=CLAIM, headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"})

        (key,) = store.snapshot()
        assert key.startswith("203.0.113.7_")

    def test_store_failure_fails_closed(self, app: FastAPI, llm: FakeLLMClient) -> None:
        broken = InMemoryQuotaStore()
        broken.get_count = AsyncMock(
            side_effect=StoreAppError(code="quota_store_unavailable", message="Error al procesar la solicitud.")
        )
        app.dependency_overrides[get_quota_store] = lambda: broken

        response = TestClient(app).post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["message"] == "Error al procesar la solicitud."
        assert llm.calls == []


# ======================== Validation ========================


class TestRequestValidation:
    @pytest.mark.parametrize(
        "body",
        [{}, {"userQuery": ""}, {"userQuery": "   "}, {"userQuery": None}, {"userQuery": 42}, {"other": "x"}],
    )
    def test_invalid_claim_returns_400_without_side_effects(
        self, client: TestClient, store: InMemoryQuotaStore, llm: FakeLLMClient, body: dict
    ) -> None:
        response = client.post("/verifyMyth", json=body, headers=CALLER)

        assert response.status_code == 400
        assert response.json()["message"] == "Falta el parámetro userQuery."
        assert store.snapshot() == {}
        assert llm.calls == []

    def test_missing_body_returns_400(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        response = client.post("/verifyMyth", headers=CALLER)

        assert response.status_code == 400
        assert store.snapshot() == {}

    def test_malformed_json_returns_400(self, client: TestClient, store: InMemoryQuotaStore) -> None:
        response = client.post(
            "/verifyMyth",
            content=b"{not json",
            headers={**CALLER, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert store.snapshot() == {}

    def test_too_long_claim_returns_400_without_consuming_quota(
        self, client: TestClient, store: InMemoryQuotaStore, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings.app, "max_query_chars", 20)

        response = client.post("/verifyMyth", json={"userQuery": "x" * 21}, headers=CALLER)

        assert response.status_code == 400
        assert response.json()["code"] == "user_query_too_long"
        assert store.snapshot() == {}

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_non_post_returns_405(
        self, client: TestClient, store: InMemoryQuotaStore, llm: FakeLLMClient, method: str
    ) -> None:
        response = client.request(method, "/verifyMyth", headers=CALLER)

        assert response.status_code == 405
        assert response.json()["message"] == "Method Not Allowed"
        assert "POST" in response.headers["allow"]
        assert store.snapshot() == {}
        assert llm.calls == []


# ======================== Upstream & Configuration ========================


class TestUpstreamOutcomes:
    def test_upstream_status_is_forwarded_and_attempt_charged(
        self, client: TestClient, store: InMemoryQuotaStore, llm: FakeLLMClient
    ) -> None:
        llm.error = UpstreamAppError(
            code="upstream_error",
            message="Error al contactar la API de IA. The model is overloaded.",
            status_code=503,
        )

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 503
        assert "The model is overloaded." in response.json()["message"]
        assert _only_count(store) == 1

    def test_invalid_verdict_returns_500(self, client: TestClient, store: InMemoryQuotaStore, llm: FakeLLMClient) -> None:
        llm.text = '{"myth": "x"}'

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["code"] == "upstream_invalid_verdict"
        assert _only_count(store) == 1

    def test_non_boolean_verdict_is_not_forwarded(self, client: TestClient, llm: FakeLLMClient) -> None:
        llm.text = json.dumps({**VERDICT, "isTrue": "yes"})

        response = client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["code"] == "upstream_invalid_verdict"
        assert '"yes"' not in response.text

    def test_unexpected_error_returns_generic_500(self, app: FastAPI, llm: FakeLLMClient) -> None:
        llm.error = RuntimeError("connection string postgres://admin:hunter2@db")

        response = TestClient(app, raise_server_exceptions=False).post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["message"] == "Ha ocurrido un error interno en el servidor."
        assert "hunter2" not in response.text
        assert "Traceback" not in response.text

    def test_missing_api_key_returns_500_before_quota(
        self, app: FastAPI, store: InMemoryQuotaStore, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings.llm, "api_key", None)
        del app.dependency_overrides[get_llm_client]

        response = TestClient(app).post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["code"] == "llm_missing_api_key"
        assert store.snapshot() == {}

    def test_missing_store_credentials_returns_500(self, app: FastAPI, llm: FakeLLMClient, monkeypatch) -> None:
        monkeypatch.setattr(settings.store, "backend", "firestore")
        monkeypatch.setattr(settings.store, "credentials_base64", None)
        del app.dependency_overrides[get_quota_store]

        response = TestClient(app).post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert response.status_code == 500
        assert response.json()["code"] == "store_missing_credentials"
        assert "QUOTA_STORE" not in response.text
        assert llm.calls == []

    def test_store_is_built_once_and_reused(self, app: FastAPI, monkeypatch) -> None:
        monkeypatch.setattr(settings.store, "backend", "memory")
        del app.dependency_overrides[get_quota_store]
        client = TestClient(app)

        client.post("/verifyMyth", json=CLAIM, headers=CALLER)
        first = app.state.quota_store
        client.post("/verifyMyth", json=CLAIM, headers=CALLER)

        assert isinstance(first, InMemoryQuotaStore)
        assert app.state.quota_store is first
        assert first.snapshot() and next(iter(first.snapshot().values())) == 2


class TestHealthCheck:
    def test_health_check_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
