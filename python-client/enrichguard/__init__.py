"""enrichguard: resilient client for an external enrichment service."""

__version__ = "0.1.0"

from .client import EnrichmentClient, ResilientEnrichmentClient, StaticEnrichmentClient
from .exceptions import ConfigurationError
from .models import EnrichmentResult, FailureReason, ResultStatus
from .resilience import BreakerRegistry

__all__ = [
    "EnrichmentClient",
    "ResilientEnrichmentClient",
    "StaticEnrichmentClient",
    "EnrichmentResult",
    "FailureReason",
    "ResultStatus",
    "BreakerRegistry",
    "ConfigurationError",
]
