"""Tests for the fallback resolver."""

import json

import pytest

from enrichguard.models import EnrichmentResult, FailureReason, ResultStatus
from enrichguard.resilience.fallback import (
    DEFAULT_FALLBACK_MESSAGE,
    FallbackConfig,
    FallbackResolver,
)


class TestFallbackConfig:
    """Test FallbackConfig dataclass."""

    def test_default_values(self):
        config = FallbackConfig()
        assert config.default_message == DEFAULT_FALLBACK_MESSAGE
        assert config.messages == {}

    def test_default_message_text(self):
        assert DEFAULT_FALLBACK_MESSAGE == (
            "External service is currently unavailable. Showing basic profile."
        )


class TestFallbackResolver:
    """Test FallbackResolver class."""

    @pytest.mark.parametrize("reason", list(FailureReason))
    def test_every_reason_resolves(self, reason):
        """Test resolution never fails and carries the reason."""
        result = FallbackResolver().resolve(reason)

        assert result.status == ResultStatus.DEGRADED
        assert result.reason == reason
        assert result.message == DEFAULT_FALLBACK_MESSAGE

    def test_deterministic(self):
        resolver = FallbackResolver()
        first = resolver.resolve(FailureReason.TIMEOUT, attempts=3)
        second = resolver.resolve(FailureReason.TIMEOUT, attempts=3)
        assert first == second

    def test_attempts_recorded(self):
        result = FallbackResolver().resolve(FailureReason.RETRIES_EXHAUSTED, attempts=3)
        assert result.attempts == 3

    def test_per_reason_message(self):
        resolver = FallbackResolver(
            FallbackConfig(messages={FailureReason.CLIENT_ERROR: "No enrichment for this user."})
        )

        assert resolver.resolve(FailureReason.CLIENT_ERROR).message == "No enrichment for this user."
        assert resolver.resolve(FailureReason.TIMEOUT).message == DEFAULT_FALLBACK_MESSAGE

    def test_serialized_body(self):
        """Test degraded JSON shape exposed to consumers."""
        body = FallbackResolver().resolve(FailureReason.CIRCUIT_OPEN).to_dict()

        assert body == {
            "enrichedDataStatus": "unavailable",
            "message": DEFAULT_FALLBACK_MESSAGE,
        }
        assert json.loads(json.dumps(body)) == body


class TestEnrichmentResult:
    """Test the result model."""

    def test_live_serializes_upstream_fields(self):
        payload = {"userId": "u1", "recentActivity": ["login"], "loyaltyScore": 12}
        result = EnrichmentResult.live(payload, attempts=2)

        assert result.is_live
        assert not result.is_degraded
        assert result.reason is None
        assert result.to_dict() == payload

    def test_live_copies_payload(self):
        payload = {"loyaltyScore": 1}
        result = EnrichmentResult.live(payload)
        payload["loyaltyScore"] = 99
        assert result.to_dict() == {"loyaltyScore": 1}
