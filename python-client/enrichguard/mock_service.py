"""Simulated enrichment service for demos and manual resilience testing.

Serves ``GET /enrich/{id}`` and ``GET /health``. A configurable share of
requests fails with 503 and every response can be delayed, which is
enough to watch retries, timeouts and the breaker at work.

Run with ``python -m enrichguard.mock_service``.
"""

import json
import logging
import random
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import unquote

from .config import settings

logger = logging.getLogger(__name__)

ENRICH_PREFIX = "/enrich/"
RECENT_ACTIVITY = ["login", "view_product", "purchase"]


class EnrichmentSimulator:
    """Decides the response for one enrichment request."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        delay: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        """Initialize simulator.

        Args:
            failure_rate: Probability (0-1) of answering 503
            delay: Seconds to wait before answering
            rng: Random source, seeded for reproducible runs
        """
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.failure_rate = failure_rate
        self.delay = delay
        self._rng = rng or random.Random()

    def respond(self, identifier: str) -> tuple[int, dict[str, Any]]:
        """Return ``(status, body)`` for ``identifier``."""
        if self._rng.random() < self.failure_rate:
            logger.info("Simulating failure")
            return 503, {"error": "Service Unavailable (Simulated)"}

        return 200, {
            "userId": identifier,
            "recentActivity": list(RECENT_ACTIVITY),
            "loyaltyScore": self._rng.randrange(100),
        }


class MockEnrichmentHandler(BaseHTTPRequestHandler):
    """HTTP handler for the simulated service."""

    server: "_SimulatorHTTPServer"

    def do_GET(self):
        """Handle GET requests."""
        if self.path == "/health":
            self._send_json(200, {"status": "UP"})
            return

        if self.path.startswith(ENRICH_PREFIX) and len(self.path) > len(ENRICH_PREFIX):
            simulator = self.server.simulator
            if simulator.delay:
                time.sleep(simulator.delay)
            identifier = unquote(self.path[len(ENRICH_PREFIX):])
            status, body = simulator.respond(identifier)
            self._send_json(status, body)
            return

        self._send_json(404, {"error": "Not Found"})

    def _send_json(self, status: int, body: dict[str, Any]) -> None:
        content = json.dumps(body).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(content)))
        self.end_headers()
        self.wfile.write(content)

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} {format % args}")


class _SimulatorHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], simulator: EnrichmentSimulator):
        super().__init__(address, MockEnrichmentHandler)
        self.simulator = simulator


class MockEnrichmentServer:
    """Background-thread HTTP server for the simulated service."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8081,
        simulator: Optional[EnrichmentSimulator] = None,
    ):
        """Initialize server.

        Args:
            host: Host to bind to
            port: Port to listen on, 0 picks a free port
            simulator: Response simulator
        """
        self.host = host
        self.port = port
        self.simulator = simulator or EnrichmentSimulator()
        self._server: Optional[_SimulatorHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}/enrich"

    def start(self) -> None:
        """Start serving in a background thread."""
        if self._server is not None:
            logger.warning("Mock enrichment service already running")
            return

        self._server = _SimulatorHTTPServer((self.host, self.port), self.simulator)
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Mock enrichment service running on {self.base_url}")

    def stop(self) -> None:
        """Stop the server."""
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
            self._thread = None
            logger.info("Mock enrichment service stopped")

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def __enter__(self) -> "MockEnrichmentServer":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    simulator = EnrichmentSimulator(
        failure_rate=settings.mock_service_failure_rate,
        delay=settings.mock_service_delay_ms / 1000,
    )
    server = MockEnrichmentServer(host="0.0.0.0", port=settings.mock_port, simulator=simulator)
    server.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
