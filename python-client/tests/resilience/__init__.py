"""Tests for resilience module."""


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from enrichguard.resilience import (
        AttemptExecutor,
        BreakerRegistry,
        CircuitBreaker,
        CircuitState,
        FallbackResolver,
        RetryConfig,
        RetryPolicy,
        RollingWindow,
    )

    assert AttemptExecutor is not None
    assert RetryPolicy is not None
    assert RollingWindow is not None
    assert CircuitBreaker is not None
    assert BreakerRegistry is not None
    assert FallbackResolver is not None
    assert CircuitState.CLOSED == "CLOSED"
    assert RetryConfig().max_attempts == 3
