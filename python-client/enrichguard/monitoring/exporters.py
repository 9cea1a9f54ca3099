"""Metric exporters for the enrichment client.

Subscribes to the client's call, retry and breaker transition events and
updates the Prometheus metrics; nothing here reads breaker internals.
"""

import logging

from ..client import CallEvent, ResilientEnrichmentClient, RetryEvent
from ..models import ResultStatus
from ..resilience.circuit_breaker import BreakerTransition, CircuitState
from .metrics import (
    circuit_breaker_state,
    circuit_breaker_transitions_total,
    enrichment_fallbacks_total,
    enrichment_latency_seconds,
    enrichment_requests_total,
    enrichment_retries_total,
)

logger = logging.getLogger(__name__)

STATE_VALUES = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class ResilienceMetricsExporter:
    """Exports enrichment call and breaker metrics."""

    def __init__(self):
        """Initialize exporter."""
        self._attached: set[str] = set()

    def attach(self, client: ResilientEnrichmentClient) -> None:
        """Subscribe to a client's events.

        Breaker transitions are subscribed once per endpoint, since clients
        built over one registry share the breaker.

        Args:
            client: Client to observe
        """
        client.add_listener(self.record_call)
        client.add_retry_listener(self.record_retry)

        if client.base_url not in self._attached:
            client.add_transition_listener(self.record_transition)
            circuit_breaker_state.labels(endpoint=client.base_url).set(
                STATE_VALUES[CircuitState.CLOSED]
            )
            self._attached.add(client.base_url)

    def record_call(self, event: CallEvent) -> None:
        """Record one fetch.

        Args:
            event: Call outcome event
        """
        enrichment_requests_total.labels(
            endpoint=event.endpoint, status=event.status.value
        ).inc()
        enrichment_latency_seconds.labels(endpoint=event.endpoint).observe(event.latency)

        if event.status == ResultStatus.DEGRADED and event.reason is not None:
            enrichment_fallbacks_total.labels(
                endpoint=event.endpoint, reason=event.reason.value
            ).inc()

    def record_retry(self, event: RetryEvent) -> None:
        """Record a retried attempt.

        Args:
            event: Retry event
        """
        enrichment_retries_total.labels(endpoint=event.endpoint, error=event.error.value).inc()

    def record_transition(self, event: BreakerTransition) -> None:
        """Record a breaker state change.

        Args:
            event: Transition event
        """
        circuit_breaker_transitions_total.labels(
            endpoint=event.name,
            from_state=event.previous.value,
            to_state=event.current.value,
        ).inc()
        circuit_breaker_state.labels(endpoint=event.name).set(STATE_VALUES[event.current])


# Global exporter instance
resilience_exporter = ResilienceMetricsExporter()
