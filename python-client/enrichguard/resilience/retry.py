"""Retry with exponential backoff.

Provides automatic retry for transient failures with:
- Configurable attempt count
- Pure exponential backoff (optional bounded jitter, off by default)
- Selective retry by failure kind
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import ConfigurationError
from .results import AttemptResult, ErrorKind

logger = logging.getLogger(__name__)


# Transient network failures, worth another attempt
RETRYABLE_ERRORS = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.CONNECTION_ERROR,
    ErrorKind.SERVER_ERROR,
})


def is_retryable(result: AttemptResult) -> bool:
    """Default retry predicate: timeouts, connection errors and 5xx."""
    return result.error in RETRYABLE_ERRORS


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.1  # Seconds before the second attempt
    exponential_base: float = 2.0
    jitter: float = 0.0  # Random jitter factor (0-1), 0 keeps delays deterministic
    retryable_check: Callable[[AttemptResult], bool] = field(default=is_retryable)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ConfigurationError(f"base_delay must be >= 0, got {self.base_delay}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ConfigurationError(f"jitter must be within [0, 1], got {self.jitter}")


def calculate_backoff(
    attempt: int,
    config: RetryConfig,
) -> float:
    """Calculate backoff delay after a failed attempt.

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    # Attempt 1 failed -> base_delay, attempt 2 failed -> 2 * base_delay, ...
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))

    if config.jitter:
        jitter_range = delay * config.jitter
        delay += random.uniform(-jitter_range, jitter_range)

    return max(delay, 0.0)


def backoff_schedule(config: RetryConfig) -> list[float]:
    """Delays slept between consecutive attempts, without jitter."""
    return [
        config.base_delay * (config.exponential_base ** (attempt - 1))
        for attempt in range(1, config.max_attempts)
    ]


def worst_case_latency(config: RetryConfig, attempt_timeout: float) -> float:
    """Upper bound on a retried sequence.

    Every attempt runs to its timeout and every backoff is slept in full:
    ``sum(delays) + max_attempts * attempt_timeout``. With jitter enabled
    each delay may exceed the bound by at most ``jitter * delay``.
    """
    return sum(backoff_schedule(config)) + config.max_attempts * attempt_timeout


class RetryPolicy:
    """Re-invokes an attempt function on retryable failures.

    Usage:
        policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay=0.1))
        result = await policy.execute(executor.attempt, "user-1")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Optional[Callable[[AttemptResult, int, float], None]] = None,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration
            sleep: Coroutine function used for backoff waits
            on_retry: Optional callback (failed result, attempt number, delay)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._on_retry = on_retry

    async def execute(
        self,
        operation: Callable[..., Awaitable[AttemptResult]],
        *args: Any,
    ) -> AttemptResult:
        """Run ``operation`` until it succeeds, fails permanently or runs out of attempts.

        Returns:
            The first Ok result, or the last Err, tagged with the attempt count
        """
        attempt = 1

        while True:
            result = await operation(*args)

            if result.ok:
                return result.with_attempts(attempt)

            if not self.config.retryable_check(result):
                logger.warning(f"Non-retryable failure on attempt {attempt}: {result.describe()}")
                return result.with_attempts(attempt)

            if attempt >= self.config.max_attempts:
                logger.error(
                    f"All {self.config.max_attempts} attempts failed, last: {result.describe()}"
                )
                return result.with_attempts(attempt)

            delay = calculate_backoff(attempt, self.config)
            logger.warning(
                f"Attempt {attempt}/{self.config.max_attempts} failed: "
                f"{result.describe()}. Retrying in {delay:.3f}s"
            )

            if self._on_retry:
                try:
                    self._on_retry(result, attempt, delay)
                except Exception:
                    logger.exception("on_retry callback failed")

            await self._sleep(delay)
            attempt += 1
