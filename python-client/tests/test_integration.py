"""Integration tests against the simulated enrichment service."""

import random

import httpx
import pytest

from enrichguard.client import ResilientEnrichmentClient
from enrichguard.config import Settings
from enrichguard.mock_service import EnrichmentSimulator, MockEnrichmentServer
from enrichguard.models import FailureReason
from enrichguard.resilience.circuit_breaker import BreakerRegistry, CircuitState
from enrichguard.resilience.retry import RetryConfig


@pytest.fixture
def mock_server():
    """Simulated service on a free port."""
    with MockEnrichmentServer(port=0, simulator=EnrichmentSimulator(rng=random.Random(7))) as server:
        yield server


class TestEnrichmentSimulator:
    """Test simulated responses."""

    def test_healthy_response(self):
        status_code, body = EnrichmentSimulator(rng=random.Random(1)).respond("u1")

        assert status_code == 200
        assert body["userId"] == "u1"
        assert body["recentActivity"] == ["login", "view_product", "purchase"]
        assert 0 <= body["loyaltyScore"] < 100

    def test_always_failing(self):
        assert EnrichmentSimulator(failure_rate=1.0).respond("u1") == (
            503,
            {"error": "Service Unavailable (Simulated)"},
        )

    def test_failure_rate_is_roughly_honoured(self):
        simulator = EnrichmentSimulator(failure_rate=0.3, rng=random.Random(42))
        failures = sum(simulator.respond("u")[0] == 503 for _ in range(1000))
        assert 200 < failures < 400

    @pytest.mark.parametrize("rate", [-0.1, 1.1])
    def test_invalid_failure_rate(self, rate):
        with pytest.raises(ValueError):
            EnrichmentSimulator(failure_rate=rate)


class TestMockEnrichmentServer:
    """Test the simulated service over HTTP."""

    def test_start_stop(self):
        server = MockEnrichmentServer(port=0)
        assert not server.is_running

        server.start()
        assert server.is_running
        assert server.port != 0
        server.stop()

        assert not server.is_running

    def test_enrich_endpoint(self, mock_server):
        response = httpx.get(f"{mock_server.base_url}/user%2042")

        assert response.status_code == 200
        assert response.json()["userId"] == "user 42"

    def test_health_endpoint(self, mock_server):
        response = httpx.get(f"http://{mock_server.host}:{mock_server.port}/health")
        assert response.json() == {"status": "UP"}

    def test_unknown_path(self, mock_server):
        response = httpx.get(f"http://{mock_server.host}:{mock_server.port}/other")
        assert response.status_code == 404


@pytest.mark.integration
class TestEndToEnd:
    """Test the client against a real HTTP server."""

    @pytest.mark.asyncio
    async def test_live_fetch(self, mock_server):
        config = Settings(external_service_url=mock_server.base_url)

        async with ResilientEnrichmentClient.from_settings(config) as client:
            result = await client.fetch("user-1")

        assert result.is_live
        assert result.to_dict()["userId"] == "user-1"

    @pytest.mark.asyncio
    async def test_failing_service_trips_breaker(self, mock_server):
        mock_server.simulator.failure_rate = 1.0
        client = ResilientEnrichmentClient(
            mock_server.base_url,
            retry_config=RetryConfig(max_attempts=2, base_delay=0.01),
            registry=BreakerRegistry(),
        )

        try:
            results = [await client.fetch(f"user-{i}") for i in range(6)]
        finally:
            await client.aclose()

        assert [r.reason for r in results[:5]] == [FailureReason.RETRIES_EXHAUSTED] * 5
        assert results[5].reason == FailureReason.CIRCUIT_OPEN
        assert client.breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_unreachable_service_degrades(self):
        server = MockEnrichmentServer(port=0)
        server.start()
        base_url = server.base_url
        server.stop()

        client = ResilientEnrichmentClient(
            base_url,
            attempt_timeout=0.5,
            retry_config=RetryConfig(max_attempts=1),
        )
        try:
            result = await client.fetch("user-1")
        finally:
            await client.aclose()

        assert result.reason in (FailureReason.CONNECTION_ERROR, FailureReason.TIMEOUT)
        assert result.to_dict()["enrichedDataStatus"] == "unavailable"
