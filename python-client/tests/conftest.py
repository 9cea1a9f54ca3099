"""Pytest configuration and fixtures for enrichguard tests."""

from typing import Any, Callable, Optional, Union

import httpx
import pytest

from enrichguard.client import ResilientEnrichmentClient
from enrichguard.resilience.circuit_breaker import CircuitBreakerConfig
from enrichguard.resilience.retry import RetryConfig

BASE_URL = "http://enrichment.test/enrich"

ENV_KEYS = [
    "EXTERNAL_SERVICE_URL",
    "EXTERNAL_SERVICE_TIMEOUT_MS",
    "RETRY_MAX_ATTEMPTS",
    "RETRY_BASE_DELAY_MS",
    "CIRCUIT_BREAKER_TIMEOUT_MS",
    "CIRCUIT_BREAKER_RESET_TIMEOUT_MS",
    "CIRCUIT_BREAKER_FAILURE_THRESHOLD",
    "CIRCUIT_BREAKER_ERROR_THRESHOLD_PERCENT",
    "ROLLING_COUNT_TIMEOUT_MS",
    "ROLLING_COUNT_BUCKETS",
    "MOCK_SERVICE_FAILURE_RATE",
    "MOCK_SERVICE_DELAY_MS",
]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.delays: list[float] = []
        self._clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)


Step = Union[httpx.Response, Exception]


class ScriptedUpstream:
    """MockTransport handler replaying a script of responses.

    The last step repeats once the script is exhausted.
    """

    def __init__(self, *steps: Step):
        self.steps = list(steps)
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, Exception):
            raise step
        return step


def ok(payload: Optional[dict[str, Any]] = None) -> httpx.Response:
    return httpx.Response(200, json=payload if payload is not None else {"loyaltyScore": 42})


def status(code: int) -> httpx.Response:
    return httpx.Response(code, json={"error": "upstream"})


@pytest.fixture(autouse=True)
def use_test_environment(monkeypatch):
    """Keep host environment variables out of Settings."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(clock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def make_client(clock, recording_sleep) -> Callable[..., ResilientEnrichmentClient]:
    """Factory for clients talking to an in-process handler."""

    def factory(handler: Callable, **kwargs: Any) -> ResilientEnrichmentClient:
        kwargs.setdefault("retry_config", RetryConfig(max_attempts=1, base_delay=0.1))
        kwargs.setdefault(
            "breaker_config",
            CircuitBreakerConfig(volume_threshold=5, error_threshold_percent=50, reset_timeout=30),
        )
        kwargs.setdefault("sleep", recording_sleep)
        kwargs.setdefault("clock", clock)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ResilientEnrichmentClient(BASE_URL, http_client=http_client, **kwargs)

    return factory
