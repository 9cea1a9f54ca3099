"""Fallback for failed enrichment calls.

The resolver is the backstop that lets the client always return a value:
it builds a degraded result from the failure reason alone, with no I/O.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models import EnrichmentResult, FailureReason

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MESSAGE = "External service is currently unavailable. Showing basic profile."


@dataclass(frozen=True)
class FallbackConfig:
    """Configuration for fallback resolver."""

    default_message: str = DEFAULT_FALLBACK_MESSAGE
    messages: dict[FailureReason, str] = field(default_factory=dict)


class FallbackResolver:
    """Produces deterministic degraded results."""

    def __init__(self, config: Optional[FallbackConfig] = None):
        """Initialize fallback resolver.

        Args:
            config: Fallback configuration
        """
        self.config = config or FallbackConfig()

    def message_for(self, reason: FailureReason) -> str:
        return self.config.messages.get(reason, self.config.default_message)

    def resolve(self, reason: FailureReason, attempts: int = 0) -> EnrichmentResult:
        """Build the degraded result for ``reason``.

        Args:
            reason: Why the live call could not be used
            attempts: Network attempts made before giving up

        Returns:
            DEGRADED enrichment result carrying the reason
        """
        logger.warning(f"Serving fallback enrichment: {reason.value} after {attempts} attempt(s)")
        return EnrichmentResult.degraded(reason, self.message_for(reason), attempts=attempts)
