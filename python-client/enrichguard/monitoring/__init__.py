"""Monitoring module for the enrichment client.

This module provides:
- Prometheus metrics for enrichment calls and circuit breakers
- An exporter wiring client events into those metrics
"""

from .exporters import ResilienceMetricsExporter, resilience_exporter
from .metrics import (
    MetricsServer,
    circuit_breaker_state,
    circuit_breaker_transitions_total,
    enrichment_fallbacks_total,
    enrichment_latency_seconds,
    enrichment_requests_total,
    enrichment_retries_total,
    generate_metrics,
)

__all__ = [
    "enrichment_requests_total",
    "enrichment_latency_seconds",
    "enrichment_retries_total",
    "enrichment_fallbacks_total",
    "circuit_breaker_state",
    "circuit_breaker_transitions_total",
    "generate_metrics",
    "MetricsServer",
    "ResilienceMetricsExporter",
    "resilience_exporter",
]
