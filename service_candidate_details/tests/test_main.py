"""
Unit tests for the Candidate Details service HTTP surface.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shared.circuit_breaker import CircuitBreaker, get_circuit_breaker
from shared.config import get_config
from shared.errors import AuthenticationError
from shared.test_helpers import EPOCH, MutableClock, create_candidate_profile, create_mock_user

from service_candidate_details.app.main import CandidateDetailsService, create_app
from service_candidate_details.app.persistence import InMemoryCandidateDetailStore
from service_candidate_details.tests.doubles import FlakyStore, RecordingProvider

AUTH_HEADERS = {"Authorization": "Bearer test-token"}


def make_config(**overrides):
    overrides.setdefault("store_backend", "memory")
    return get_config("candidate_details", 8020, **overrides)


class TestCandidateDetailsService:
    """Test cases for CandidateDetailsService."""

    @pytest.fixture
    def provider(self):
        provider = RecordingProvider(known_ids=[1, 2])
        provider.circuit_breaker = CircuitBreaker(name="test_main_provider")
        return provider

    @pytest.fixture
    def auth_client(self):
        client = MagicMock()
        client.verify_token = AsyncMock(return_value=create_mock_user("user-1"))
        return client

    @pytest.fixture
    def store(self):
        return InMemoryCandidateDetailStore()

    @pytest.fixture
    def clock(self):
        return MutableClock(EPOCH)

    @pytest.fixture
    def service(self, store, provider, auth_client, clock):
        return CandidateDetailsService(
            make_config(),
            store=store,
            provider_client=provider,
            auth_client=auth_client,
            clock=clock,
        )

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app) as client:
            yield client

    def test_injected_empty_store_is_used(self, service, store, provider, auth_client):
        assert len(store) == 0
        assert service.store is store
        assert service.provider_client is provider
        assert service.auth_client is auth_client

    def test_health_fails_when_store_unreachable(self, client, store):
        store.ping = AsyncMock(return_value=False)

        response = client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["dependencies"]["store"] == "unavailable"

    def test_health_ok_with_open_provider_circuit(self, client, provider):
        provider.circuit_breaker._on_failure(probing=True)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["dependencies"]["provider_circuit"] == "open"

    def test_candidate_id_beyond_bigint(self, client, provider, store):
        response = client.post(
            "/candidate-details",
            json={"candidateIds": [1, 2 ** 63], "projectId": "p1"},
            headers=AUTH_HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "candidateIds must be 64-bit signed integers"
        assert provider.calls == []
        assert len(store) == 0

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "candidate_details"
        assert data["message"] == "Candidate Details Service"

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"store": "ok", "provider_circuit": "closed"}

    def test_metrics_endpoint(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_candidate_details_cold_cache(self, client, provider):
        response = client.post(
            "/candidate-details",
            json={"candidateIds": [1, 2, 3], "projectId": "p1"},
            headers=AUTH_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data == {
            "success": True,
            "details": {"1": create_candidate_profile(1), "2": create_candidate_profile(2)},
            "cached_count": 0,
            "api_fetched_count": 3,
        }
        assert provider.calls == [[1, 2, 3]]

    def test_candidate_details_warm_cache(self, client, provider, clock):
        body = {"candidateIds": [1, 2, 3], "projectId": "p1"}
        client.post("/candidate-details", json=body, headers=AUTH_HEADERS)
        clock.advance(hours=1)

        response = client.post("/candidate-details", json=body, headers=AUTH_HEADERS)

        data = response.json()
        assert data["cached_count"] == 2
        assert data["api_fetched_count"] == 1
        assert provider.calls[-1] == [3]

    def test_provider_outage_still_succeeds(self, client, provider):
        provider.fail = True

        response = client.post(
            "/candidate-details",
            json={"candidateIds": [1, 2, 3], "projectId": "p1"},
            headers=AUTH_HEADERS,
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "details": {}, "cached_count": 0, "api_fetched_count": 3}

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_generated(self, client):
        response = client.get("/")

        assert response.headers["X-Request-ID"]

    def test_missing_authorization(self, client, provider):
        response = client.post("/candidate-details", json={"candidateIds": [1], "projectId": "p1"})

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "No authorization header"
        assert data["code"] == "AUTHENTICATION_ERROR"
        assert provider.calls == []

    def test_rejected_token(self, client, auth_client):
        auth_client.verify_token.side_effect = AuthenticationError("Invalid or expired token")

        response = client.post(
            "/candidate-details",
            json={"candidateIds": [1], "projectId": "p1"},
            headers=AUTH_HEADERS,
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    @pytest.mark.parametrize("body,message", [
        ({"candidateIds": [], "projectId": "p1"}, "candidateIds must be a non-empty array of numbers"),
        ({"projectId": "p1"}, "candidateIds must be a non-empty array of numbers"),
        ({"candidateIds": [1, 1], "projectId": "p1"}, "candidateIds must not contain duplicates"),
        ({"candidateIds": [1]}, "projectId is required"),
        ({"candidateIds": [1], "projectId": "   "}, "projectId is required"),
    ])
    def test_invalid_batch(self, client, provider, store, body, message):
        response = client.post("/candidate-details", json=body, headers=AUTH_HEADERS)

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == message
        assert data["code"] == "VALIDATION_ERROR"
        assert provider.calls == []
        assert len(store) == 0

    @pytest.mark.parametrize("body", [
        {"candidateIds": ["1"], "projectId": "p1"},
        {"candidateIds": [1.5], "projectId": "p1"},
        {"candidateIds": 1, "projectId": "p1"},
        {"candidateIds": [1], "projectId": 7},
    ])
    def test_mistyped_body(self, client, provider, body):
        response = client.post("/candidate-details", json=body, headers=AUTH_HEADERS)

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "VALIDATION_ERROR"
        assert data["error"]
        assert provider.calls == []

    def test_store_read_failure(self, provider, auth_client):
        service = CandidateDetailsService(
            make_config(),
            store=FlakyStore(fail_reads=True),
            provider_client=provider,
            auth_client=auth_client,
        )

        with TestClient(service.app) as client:
            response = client.post(
                "/candidate-details",
                json={"candidateIds": [1], "projectId": "p1"},
                headers=AUTH_HEADERS,
            )

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "STORE_READ_ERROR"
        assert data["error"] == "Failed to read cached candidate details"
        assert provider.calls == []

    def test_write_failure_omits_record(self, provider, auth_client):
        service = CandidateDetailsService(
            make_config(),
            store=FlakyStore(fail_writes_for=[2]),
            provider_client=provider,
            auth_client=auth_client,
        )

        with TestClient(service.app) as client:
            response = client.post(
                "/candidate-details",
                json={"candidateIds": [1, 2], "projectId": "p1"},
                headers=AUTH_HEADERS,
            )

        assert response.status_code == 200
        assert list(response.json()["details"]) == ["1"]

    def test_owner_comes_from_token(self, client, auth_client, provider):
        body = {"candidateIds": [1], "projectId": "p1"}
        client.post("/candidate-details", json=body, headers=AUTH_HEADERS)
        auth_client.verify_token.return_value = create_mock_user("user-2")

        response = client.post("/candidate-details", json=body, headers=AUTH_HEADERS)

        assert response.json()["cached_count"] == 0
        assert len(provider.calls) == 2

    def test_cached_endpoint(self, client, provider):
        client.post("/candidate-details", json={"candidateIds": [1, 2], "projectId": "p1"}, headers=AUTH_HEADERS)

        response = client.get(
            "/candidate-details/cached",
            params={"projectId": "p1", "candidateIds": "1,2,3"},
            headers=AUTH_HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data["details"]) == {"1", "2"}
        assert data["cached_count"] == 2
        assert data["api_fetched_count"] == 0
        assert len(provider.calls) == 1

    @pytest.mark.parametrize("params", [
        {"projectId": "p1"},
        {"projectId": "p1", "candidateIds": "1,x"},
        {"candidateIds": "1"},
    ])
    def test_cached_endpoint_validation(self, client, params):
        response = client.get("/candidate-details/cached", params=params, headers=AUTH_HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_cors_preflight(self, client):
        response = client.options(
            "/candidate-details",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, x-client-info, apikey, content-type",
            },
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


class TestServiceConstruction:
    """Test cases for service wiring."""

    def test_create_app_with_memory_store(self):
        app = create_app(make_config())

        service = app.state.candidate_details_service
        assert isinstance(service.store, InMemoryCandidateDetailStore)
        assert service.detail_cache.expiry_window.total_seconds() == 24 * 3600

    def test_expiry_window_from_config(self):
        service = CandidateDetailsService(make_config(cache_expiry_hours=2))

        assert service.detail_cache.expiry_window.total_seconds() == 2 * 3600

    def test_injected_empty_store_overrides_backend(self):
        store = InMemoryCandidateDetailStore()
        provider = RecordingProvider(known_ids=[])
        auth_client = MagicMock()
        config = get_config("candidate_details", 8020, store_backend="postgres")

        service = CandidateDetailsService(config, store=store, provider_client=provider, auth_client=auth_client)

        assert service.store is store
        assert service.detail_cache.store is store

    def test_provider_breaker_follows_config(self):
        get_circuit_breaker("candidate_provider", failure_threshold=5, recovery_timeout=60.0)

        service = CandidateDetailsService(
            make_config(provider_failure_threshold=2, provider_recovery_timeout=7.5)
        )

        breaker = service.provider_client.circuit_breaker
        assert breaker.failure_threshold == 2
        assert breaker.recovery_timeout == 7.5

    def test_unknown_store_backend(self):
        with pytest.raises(ValueError):
            CandidateDetailsService(make_config(store_backend="sqlite"))
