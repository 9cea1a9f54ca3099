"""Tests for monitoring module."""


def test_monitoring_imports():
    """Test that all monitoring module components can be imported."""
    from enrichguard.monitoring import (
        MetricsServer,
        ResilienceMetricsExporter,
        circuit_breaker_state,
        circuit_breaker_transitions_total,
        enrichment_fallbacks_total,
        enrichment_latency_seconds,
        enrichment_requests_total,
        enrichment_retries_total,
        generate_metrics,
        resilience_exporter,
    )

    assert enrichment_requests_total is not None
    assert isinstance(resilience_exporter, ResilienceMetricsExporter)
    assert MetricsServer is not None
