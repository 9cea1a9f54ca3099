"""Enrichment clients.

``ResilientEnrichmentClient`` composes circuit breaker, overall call
timeout, retry policy and attempt executor, and funnels every terminal
failure through the fallback resolver. ``fetch`` never raises for
downstream trouble: unavailability is returned as a DEGRADED result.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from .config import Settings
from .exceptions import CallTimeoutError, ConfigurationError
from .models import EnrichmentResult, FailureReason, ResultStatus
from .resilience.circuit_breaker import (
    BreakerRegistry,
    CircuitBreakerConfig,
    TransitionListener,
)
from .resilience.fallback import FallbackResolver
from .resilience.results import AttemptResult, ErrorKind
from .resilience.retry import RetryConfig, RetryPolicy, worst_case_latency
from .resilience.timeout import (
    DEFAULT_ATTEMPT_TIMEOUT,
    DEFAULT_CALL_TIMEOUT,
    AttemptExecutor,
    with_async_timeout,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallEvent:
    """Emitted once per ``fetch``."""

    endpoint: str
    identifier: str
    status: ResultStatus
    reason: Optional[FailureReason]
    attempts: int
    latency: float  # Seconds


@dataclass(frozen=True)
class RetryEvent:
    """Emitted before each backoff sleep."""

    endpoint: str
    error: ErrorKind
    attempt: int
    delay: float


CallListener = Callable[[CallEvent], None]
RetryListener = Callable[[RetryEvent], None]


def validate_base_url(base_url: str) -> str:
    """Check that ``base_url`` is an absolute http(s) URL.

    Raises:
        ConfigurationError: If the URL is malformed
    """
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid enrichment service URL {base_url!r}: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Enrichment service URL must be an absolute http(s) URL, got {base_url!r}"
        )
    return base_url.rstrip("/")


class EnrichmentClient(ABC):
    """Contract for fetching enrichment data for an identifier."""

    @abstractmethod
    async def fetch(self, identifier: str) -> EnrichmentResult:
        """Fetch enrichment data; must always return a result."""

    async def aclose(self) -> None:
        """Release resources held by the client."""

    async def __aenter__(self) -> "EnrichmentClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class ResilientEnrichmentClient(EnrichmentClient):
    """Enrichment client guarded by breaker, retry, timeouts and fallback.

    Usage:
        registry = BreakerRegistry()
        async with ResilientEnrichmentClient.from_settings(registry=registry) as client:
            result = await client.fetch("user-42")
            body = result.to_dict()
    """

    def __init__(
        self,
        base_url: str,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        retry_config: Optional[RetryConfig] = None,
        breaker_config: Optional[CircuitBreakerConfig] = None,
        registry: Optional[BreakerRegistry] = None,
        fallback: Optional[FallbackResolver] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize client.

        Args:
            base_url: Enrichment service base URL
            attempt_timeout: Hard timeout per network attempt, in seconds
            call_timeout: Timeout for the whole retried sequence, in seconds
            retry_config: Retry configuration
            breaker_config: Breaker configuration, used if the registry has
                no breaker for this endpoint yet
            registry: Shared per-endpoint breakers, a private one if omitted
            fallback: Fallback resolver
            http_client: HTTP client to use instead of an owned one
            sleep: Coroutine function for backoff waits
            clock: Monotonic time source for a private registry

        Raises:
            ConfigurationError: On a malformed URL or non-positive timeouts
        """
        self.base_url = validate_base_url(base_url)
        if attempt_timeout <= 0 or call_timeout <= 0:
            raise ConfigurationError(
                f"Timeouts must be positive, got attempt={attempt_timeout} call={call_timeout}"
            )

        self.attempt_timeout = attempt_timeout
        self.call_timeout = call_timeout
        self.executor = AttemptExecutor(self.base_url, attempt_timeout, http_client)
        self.retry_policy = RetryPolicy(retry_config, sleep=sleep, on_retry=self._notify_retry)
        self.registry = registry if registry is not None else BreakerRegistry(clock=clock)
        self.breaker = self.registry.get(self.base_url, breaker_config)
        self.fallback = fallback or FallbackResolver()
        self._call_listeners: list[CallListener] = []
        self._retry_listeners: list[RetryListener] = []

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        **kwargs: Any,
    ) -> "ResilientEnrichmentClient":
        """Build a client from application settings.

        Args:
            config: Settings, loaded from the environment if omitted
            **kwargs: Overrides passed to the constructor (registry, http_client, ...)
        """
        config = config or Settings()
        options: dict[str, Any] = {
            "attempt_timeout": config.attempt_timeout,
            "call_timeout": config.call_timeout,
            "retry_config": config.retry_config(),
            "breaker_config": config.breaker_config(),
        }
        options.update(kwargs)
        return cls(config.external_service_url, **options)

    @property
    def worst_case_latency(self) -> float:
        """Longest a ``fetch`` can take, in seconds."""
        return min(
            self.call_timeout,
            worst_case_latency(self.retry_policy.config, self.attempt_timeout),
        )

    def add_listener(self, listener: CallListener) -> None:
        """Subscribe to per-call outcome events."""
        self._call_listeners.append(listener)

    def add_retry_listener(self, listener: RetryListener) -> None:
        """Subscribe to retry events."""
        self._retry_listeners.append(listener)

    def add_transition_listener(self, listener: TransitionListener) -> None:
        """Subscribe to this endpoint's breaker transitions."""
        self.breaker.add_listener(listener)

    def get_status(self) -> dict[str, Any]:
        return {
            "endpoint": self.base_url,
            "attempt_timeout": self.attempt_timeout,
            "call_timeout": self.call_timeout,
            "max_attempts": self.retry_policy.config.max_attempts,
            "breaker": self.breaker.get_status(),
        }

    async def fetch(self, identifier: str) -> EnrichmentResult:
        """Fetch enrichment data for ``identifier``.

        Args:
            identifier: Entity identifier appended to the base URL

        Returns:
            LIVE result with the upstream payload, or a DEGRADED fallback
        """
        started = time.perf_counter()

        try:
            result = await self.breaker.guard(lambda: self._guarded_call(identifier))
            enrichment = self._to_enrichment(result)
        except Exception:
            logger.exception(f"Unexpected error fetching enrichment for {identifier}")
            enrichment = self.fallback.resolve(FailureReason.INTERNAL_ERROR)

        self._notify_call(identifier, enrichment, time.perf_counter() - started)
        return enrichment

    async def _guarded_call(self, identifier: str) -> AttemptResult:
        attempts = 0

        async def counted_attempt(key: str) -> AttemptResult:
            nonlocal attempts
            attempts += 1
            return await self.executor.attempt(key)

        try:
            return await with_async_timeout(
                self.retry_policy.execute(counted_attempt, identifier),
                self.call_timeout,
                f"Enrichment call for {identifier} timed out",
            )
        except CallTimeoutError as e:
            logger.warning(str(e))
            return AttemptResult.failure(ErrorKind.TIMEOUT, detail=str(e), attempts=attempts)

    def _to_enrichment(self, result: AttemptResult) -> EnrichmentResult:
        if result.ok:
            return EnrichmentResult.live(result.payload or {}, attempts=result.attempts)
        return self.fallback.resolve(self._reason_for(result), attempts=result.attempts)

    def _reason_for(self, result: AttemptResult) -> FailureReason:
        if result.error == ErrorKind.CIRCUIT_OPEN:
            return FailureReason.CIRCUIT_OPEN

        config = self.retry_policy.config
        if (
            config.max_attempts > 1
            and result.attempts >= config.max_attempts
            and config.retryable_check(result)
        ):
            return FailureReason.RETRIES_EXHAUSTED

        return FailureReason(result.error.value)

    def _notify_retry(self, result: AttemptResult, attempt: int, delay: float) -> None:
        event = RetryEvent(self.base_url, result.error, attempt, delay)
        for listener in list(self._retry_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Retry listener failed")

    def _notify_call(self, identifier: str, result: EnrichmentResult, latency: float) -> None:
        event = CallEvent(
            endpoint=self.base_url,
            identifier=identifier,
            status=result.status,
            reason=result.reason,
            attempts=result.attempts,
            latency=latency,
        )
        for listener in list(self._call_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Call listener failed")

    async def aclose(self) -> None:
        await self.executor.aclose()


class StaticEnrichmentClient(EnrichmentClient):
    """In-memory enrichment client for tests and local wiring.

    Known identifiers return their canned payload, anything else a
    degraded result.
    """

    def __init__(
        self,
        payloads: Optional[dict[str, dict[str, Any]]] = None,
        missing_reason: FailureReason = FailureReason.CLIENT_ERROR,
        fallback: Optional[FallbackResolver] = None,
    ):
        self.payloads = dict(payloads or {})
        self.missing_reason = missing_reason
        self.fallback = fallback or FallbackResolver()
        self.calls: list[str] = []

    async def fetch(self, identifier: str) -> EnrichmentResult:
        self.calls.append(identifier)
        if identifier in self.payloads:
            return EnrichmentResult.live(self.payloads[identifier])
        return self.fallback.resolve(self.missing_reason)
