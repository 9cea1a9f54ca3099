"""Example script demonstrating the resilient enrichment client.

Starts the simulated enrichment service with a high failure rate, fires a
burst of concurrent fetches and logs how retries, fallbacks and the
circuit breaker respond.
"""

import asyncio
import logging

from enrichguard import BreakerRegistry, ResilientEnrichmentClient
from enrichguard.config import Settings
from enrichguard.mock_service import EnrichmentSimulator, MockEnrichmentServer
from enrichguard.monitoring import MetricsServer, generate_metrics, resilience_exporter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Run a short resilience demonstration."""

    logger.info("=" * 60)
    logger.info("Resilient Enrichment Client Demo")
    logger.info("=" * 60)

    simulator = EnrichmentSimulator(failure_rate=0.7, delay=0.05)
    metrics_server = MetricsServer(host="127.0.0.1", port=0)
    metrics_server.start()

    with MockEnrichmentServer(port=0, simulator=simulator) as upstream:
        config = Settings(
            external_service_url=upstream.base_url,
            circuit_breaker_reset_timeout_ms=2000,
        )
        registry = BreakerRegistry()

        async with ResilientEnrichmentClient.from_settings(config, registry=registry) as client:
            resilience_exporter.attach(client)
            logger.info(f"Worst-case fetch latency: {client.worst_case_latency:.2f}s")

            for round_number in range(1, 4):
                logger.info("-" * 60)
                logger.info(f"Round {round_number}: 10 concurrent fetches")

                identifiers = [f"user-{round_number}-{i}" for i in range(10)]
                results = await asyncio.gather(*(client.fetch(i) for i in identifiers))

                for identifier, result in zip(identifiers, results):
                    if result.is_live:
                        logger.info(f"  {identifier}: LIVE {result.to_dict()}")
                    else:
                        logger.info(
                            f"  {identifier}: DEGRADED ({result.reason.value}, "
                            f"{result.attempts} attempt(s))"
                        )

                logger.info(f"Breaker: {client.get_status()['breaker']['state']}")
                await asyncio.sleep(2.5)

            # Upstream recovers, the next probe should close the breaker
            simulator.failure_rate = 0.0
            result = await client.fetch("user-recovered")
            logger.info(f"After recovery: {result.status.value}, breaker {client.breaker.state.value}")

    logger.info("")
    logger.info("Metrics:")
    for line in generate_metrics().splitlines():
        if line and not line.startswith("#"):
            logger.info(f"  {line}")

    metrics_server.stop()
    logger.info("=" * 60)
    logger.info("Demo complete!")


if __name__ == "__main__":
    asyncio.run(main())
