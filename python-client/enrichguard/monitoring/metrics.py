"""Prometheus metrics for the enrichment client.

Exports metrics on port 8000 for Prometheus scraping:
- Call metrics: enrichment_requests_total, enrichment_latency_seconds
- Retry metrics: enrichment_retries_total
- Fallback metrics: enrichment_fallbacks_total
- Breaker metrics: circuit_breaker_state, circuit_breaker_transitions_total
"""

import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Metric Classes (Lightweight implementation without prometheus_client dependency)
# =============================================================================


class _Metric:
    """Shared label handling for all metric types."""

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        self.name = name
        self.description = description
        self._label_names = labels or []
        self._lock = threading.Lock()

    def _label_key(self, **kwargs) -> tuple:
        return tuple(str(kwargs.get(l, "")) for l in self._label_names)

    def _format_labels(self, label_values: tuple, extra: str = "") -> str:
        parts = [f'{l}="{v}"' for l, v in zip(self._label_names, label_values)]
        if extra:
            parts.append(extra)
        return "{" + ",".join(parts) + "}" if parts else ""

    def _header(self) -> list[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]


class Counter(_Metric):
    """A counter metric that can only increase."""

    kind = "counter"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        super().__init__(name, description, labels)
        self._values: dict[tuple, float] = {}

    def labels(self, **kwargs) -> "CounterWithLabels":
        """Return a counter with specific labels."""
        return CounterWithLabels(self, self._label_key(**kwargs))

    def inc(self, value: float = 1.0) -> None:
        """Increment the counter."""
        self._inc_labels((), value)

    def _inc_labels(self, label_values: tuple, value: float = 1.0) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[label_values] = self._values.get(label_values, 0) + value

    def get(self, **kwargs) -> float:
        """Current value for a label combination."""
        with self._lock:
            return self._values.get(self._label_key(**kwargs), 0)

    def get_all(self) -> dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return self._values.copy()

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = self._header()
        with self._lock:
            for label_values, value in self._values.items():
                lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return "\n".join(lines)


class CounterWithLabels:
    """Counter with specific label values."""

    def __init__(self, parent: Counter, label_values: tuple):
        self._parent = parent
        self._label_values = label_values

    def inc(self, value: float = 1.0) -> None:
        """Increment the counter."""
        self._parent._inc_labels(self._label_values, value)


class Gauge(_Metric):
    """A gauge metric that can increase or decrease."""

    kind = "gauge"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        super().__init__(name, description, labels)
        self._values: dict[tuple, float] = {}

    def labels(self, **kwargs) -> "GaugeWithLabels":
        """Return a gauge with specific labels."""
        return GaugeWithLabels(self, self._label_key(**kwargs))

    def set(self, value: float) -> None:
        """Set the gauge value."""
        self._set_labels((), value)

    def _set_labels(self, label_values: tuple, value: float) -> None:
        with self._lock:
            self._values[label_values] = value

    def get(self, **kwargs) -> Optional[float]:
        with self._lock:
            return self._values.get(self._label_key(**kwargs))

    def get_all(self) -> dict[tuple, float]:
        """Get all values."""
        with self._lock:
            return self._values.copy()

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = self._header()
        with self._lock:
            for label_values, value in self._values.items():
                lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return "\n".join(lines)


class GaugeWithLabels:
    """Gauge with specific label values."""

    def __init__(self, parent: Gauge, label_values: tuple):
        self._parent = parent
        self._label_values = label_values

    def set(self, value: float) -> None:
        """Set the gauge value."""
        self._parent._set_labels(self._label_values, value)


class Histogram(_Metric):
    """A histogram metric for tracking distributions."""

    kind = "histogram"
    DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[list[str]] = None,
        buckets: Optional[tuple] = None,
    ):
        super().__init__(name, description, labels)
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._observations: dict[tuple, list[float]] = {}

    def labels(self, **kwargs) -> "HistogramWithLabels":
        """Return a histogram with specific labels."""
        return HistogramWithLabels(self, self._label_key(**kwargs))

    def observe(self, value: float) -> None:
        """Record an observation."""
        self._observe_labels((), value)

    def _observe_labels(self, label_values: tuple, value: float) -> None:
        with self._lock:
            self._observations.setdefault(label_values, []).append(value)

    def get_all(self) -> dict[tuple, list[float]]:
        """Get all observations."""
        with self._lock:
            return {k: v.copy() for k, v in self._observations.items()}

    def clear(self) -> None:
        with self._lock:
            self._observations.clear()

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        lines = self._header()
        with self._lock:
            for label_values, observations in self._observations.items():
                count = len(observations)
                for bucket in self.buckets:
                    bucket_count = sum(1 for o in observations if o <= bucket)
                    labels = self._format_labels(label_values, f'le="{bucket}"')
                    lines.append(f"{self.name}_bucket{labels} {bucket_count}")

                inf_labels = self._format_labels(label_values, 'le="+Inf"')
                lines.append(f"{self.name}_bucket{inf_labels} {count}")
                plain = self._format_labels(label_values)
                lines.append(f"{self.name}_sum{plain} {sum(observations)}")
                lines.append(f"{self.name}_count{plain} {count}")
        return "\n".join(lines)


class HistogramWithLabels:
    """Histogram with specific label values."""

    def __init__(self, parent: Histogram, label_values: tuple):
        self._parent = parent
        self._label_values = label_values

    def observe(self, value: float) -> None:
        """Record an observation."""
        self._parent._observe_labels(self._label_values, value)


# =============================================================================
# Call Metrics
# =============================================================================

enrichment_requests_total = Counter(
    name="enrichguard_requests_total",
    description="Total number of enrichment fetches by result status",
    labels=["endpoint", "status"],
)

enrichment_latency_seconds = Histogram(
    name="enrichguard_latency_seconds",
    description="Enrichment fetch latency in seconds, retries included",
    labels=["endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 1.5, 3.0, 5.0),
)

enrichment_retries_total = Counter(
    name="enrichguard_retries_total",
    description="Total number of retried attempts by failure kind",
    labels=["endpoint", "error"],
)

enrichment_fallbacks_total = Counter(
    name="enrichguard_fallbacks_total",
    description="Total number of degraded results by reason",
    labels=["endpoint", "reason"],
)


# =============================================================================
# Circuit Breaker Metrics
# =============================================================================

circuit_breaker_state = Gauge(
    name="enrichguard_circuit_breaker_state",
    description="Breaker state: 0 closed, 1 half-open, 2 open",
    labels=["endpoint"],
)

circuit_breaker_transitions_total = Counter(
    name="enrichguard_circuit_breaker_transitions_total",
    description="Number of circuit breaker state transitions",
    labels=["endpoint", "from_state", "to_state"],
)


# =============================================================================
# Metrics Registry
# =============================================================================

_ALL_METRICS = [
    enrichment_requests_total,
    enrichment_latency_seconds,
    enrichment_retries_total,
    enrichment_fallbacks_total,
    circuit_breaker_state,
    circuit_breaker_transitions_total,
]


def generate_metrics() -> str:
    """Generate all metrics in Prometheus text format."""
    return "\n\n".join(metric.to_prometheus() for metric in _ALL_METRICS)


def clear_metrics() -> None:
    """Reset every registered metric."""
    for metric in _ALL_METRICS:
        metric.clear()


# =============================================================================
# Metrics HTTP Server
# =============================================================================


class MetricsHandler(BaseHTTPRequestHandler):
    """HTTP handler for metrics endpoint."""

    def do_GET(self):
        """Handle GET requests."""
        if self.path == "/metrics":
            content = generate_metrics()
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; version=0.0.4; charset=utf-8")
            self.end_headers()
            self.wfile.write(content.encode("utf-8"))
        elif self.path == "/health":
            self.send_response(200)
            self.send_header("Content-Type", "text/plain")
            self.end_headers()
            self.wfile.write(b"OK")
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        logger.debug(f"metrics {self.address_string()} {format % args}")


class MetricsServer:
    """HTTP server for Prometheus metrics."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8000):
        """Initialize metrics server.

        Args:
            host: Host to bind to
            port: Port to listen on, 0 picks a free port
        """
        self.host = host
        self.port = port
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the metrics server in a background thread."""
        if self._server is not None:
            logger.warning("Metrics server already running")
            return

        self._server = HTTPServer((self.host, self.port), MetricsHandler)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Metrics server started on http://{self.host}:{self.port}/metrics")

    def stop(self) -> None:
        """Stop the metrics server."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            self._thread = None
            logger.info("Metrics server stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._server is not None
