"""Tests for Prometheus metrics."""

import httpx
import pytest

from enrichguard.monitoring.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsServer,
    circuit_breaker_state,
    clear_metrics,
    enrichment_fallbacks_total,
    enrichment_latency_seconds,
    enrichment_requests_total,
    generate_metrics,
)


@pytest.fixture(autouse=True)
def reset_metrics():
    clear_metrics()
    yield
    clear_metrics()


class TestCounter:
    """Test Counter metric."""

    def test_counter_increment(self):
        counter = Counter("test_counter", "Test counter")
        counter.inc()
        counter.inc(2)
        assert counter.get_all()[()] == 3

    def test_counter_with_labels(self):
        counter = Counter("test_counter", "Test counter", labels=["status"])
        counter.labels(status="LIVE").inc()
        counter.labels(status="DEGRADED").inc(2)

        assert counter.get(status="LIVE") == 1
        assert counter.get(status="DEGRADED") == 2
        assert counter.get(status="unknown") == 0

    def test_counter_rejects_decrease(self):
        with pytest.raises(ValueError):
            Counter("test_counter", "Test counter").inc(-1)

    def test_counter_prometheus_format(self):
        """Test Prometheus text format output."""
        counter = Counter("test_counter", "Test counter", labels=["status"])
        counter.labels(status="LIVE").inc(5)
        output = counter.to_prometheus()

        assert "# HELP test_counter Test counter" in output
        assert "# TYPE test_counter counter" in output
        assert 'test_counter{status="LIVE"} 5' in output


class TestGauge:
    """Test Gauge metric."""

    def test_gauge_set(self):
        gauge = Gauge("test_gauge", "Test gauge")
        gauge.set(42)
        gauge.set(7)
        assert gauge.get_all()[()] == 7

    def test_gauge_with_labels(self):
        gauge = Gauge("test_gauge", "Test gauge", labels=["endpoint"])
        gauge.labels(endpoint="a").set(2)
        assert gauge.get(endpoint="a") == 2
        assert gauge.get(endpoint="b") is None


class TestHistogram:
    """Test Histogram metric."""

    def test_histogram_with_labels(self):
        histogram = Histogram("test_histogram", "Test histogram", labels=["endpoint"])
        histogram.labels(endpoint="a").observe(0.1)
        histogram.labels(endpoint="a").observe(0.3)

        assert histogram.get_all() == {("a",): [0.1, 0.3]}

    def test_histogram_prometheus_format(self):
        """Test cumulative buckets plus sum and count."""
        histogram = Histogram("test_histogram", "Test histogram", buckets=(0.1, 1.0))
        histogram.observe(0.05)
        histogram.observe(0.5)
        output = histogram.to_prometheus()

        assert "# TYPE test_histogram histogram" in output
        assert 'test_histogram_bucket{le="0.1"} 1' in output
        assert 'test_histogram_bucket{le="1.0"} 2' in output
        assert 'test_histogram_bucket{le="+Inf"} 2' in output
        assert "test_histogram_count 2" in output


class TestPredefinedMetrics:
    """Test predefined metrics."""

    def test_requests_total(self):
        enrichment_requests_total.labels(endpoint="http://svc/enrich", status="LIVE").inc()
        assert ("http://svc/enrich", "LIVE") in enrichment_requests_total.get_all()

    def test_fallbacks_total(self):
        enrichment_fallbacks_total.labels(endpoint="http://svc/enrich", reason="CIRCUIT_OPEN").inc()
        assert enrichment_fallbacks_total.get(
            endpoint="http://svc/enrich", reason="CIRCUIT_OPEN"
        ) == 1

    def test_clear_metrics(self):
        enrichment_latency_seconds.labels(endpoint="x").observe(0.2)
        circuit_breaker_state.labels(endpoint="x").set(2)

        clear_metrics()

        assert enrichment_latency_seconds.get_all() == {}
        assert circuit_breaker_state.get_all() == {}


class TestGenerateMetrics:
    """Test metrics generation."""

    def test_generate_metrics_format(self):
        circuit_breaker_state.labels(endpoint="http://svc/enrich").set(2)

        output = generate_metrics()

        assert "# HELP enrichguard_requests_total" in output
        assert "# TYPE enrichguard_circuit_breaker_state gauge" in output
        assert 'enrichguard_circuit_breaker_state{endpoint="http://svc/enrich"} 2' in output


class TestMetricsServer:
    """Test MetricsServer."""

    def test_server_initialization(self):
        server = MetricsServer(host="127.0.0.1", port=8001)
        assert server.host == "127.0.0.1"
        assert server.port == 8001
        assert not server.is_running

    def test_server_start_stop(self):
        server = MetricsServer(host="127.0.0.1", port=0)
        server.start()
        assert server.is_running
        assert server.port != 0

        server.stop()
        assert not server.is_running

    def test_server_double_start(self):
        """Test starting server twice doesn't crash."""
        server = MetricsServer(host="127.0.0.1", port=0)
        server.start()
        server.start()
        assert server.is_running
        server.stop()

    def test_serves_metrics(self):
        enrichment_requests_total.labels(endpoint="http://svc/enrich", status="DEGRADED").inc()
        server = MetricsServer(host="127.0.0.1", port=0)
        server.start()
        try:
            base = f"http://127.0.0.1:{server.port}"
            metrics = httpx.get(f"{base}/metrics")
            health = httpx.get(f"{base}/health")
            missing = httpx.get(f"{base}/nope")
        finally:
            server.stop()

        assert metrics.status_code == 200
        assert 'status="DEGRADED"' in metrics.text
        assert health.text == "OK"
        assert missing.status_code == 404
