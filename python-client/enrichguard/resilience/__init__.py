"""Resilience layer for the enrichment client.

This module provides:
- Single-attempt executor with a hard timeout
- Retry with exponential backoff
- Rolling failure window
- Failure-rate circuit breakers, one per endpoint
- Deterministic fallback results
"""

from .circuit_breaker import (
    Admission,
    BreakerRegistry,
    BreakerTransition,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from .fallback import FallbackConfig, FallbackResolver
from .results import AttemptResult, CallOutcome, ErrorKind
from .retry import RetryConfig, RetryPolicy, calculate_backoff, worst_case_latency
from .timeout import AttemptExecutor, with_async_timeout
from .window import RollingWindow

__all__ = [
    "AttemptExecutor",
    "with_async_timeout",
    "RetryPolicy",
    "RetryConfig",
    "calculate_backoff",
    "worst_case_latency",
    "RollingWindow",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "Admission",
    "BreakerTransition",
    "BreakerRegistry",
    "FallbackResolver",
    "FallbackConfig",
    "AttemptResult",
    "CallOutcome",
    "ErrorKind",
]
