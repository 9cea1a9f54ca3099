"""Result model returned to callers of the enrichment client."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

UNAVAILABLE_STATUS = "unavailable"


class ResultStatus(str, Enum):
    """Whether the payload came from upstream or from the fallback."""

    LIVE = "LIVE"
    DEGRADED = "DEGRADED"


class FailureReason(str, Enum):
    """Why a degraded result was produced."""

    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class EnrichmentResult:
    """Value handed back by ``fetch``.

    Downstream unavailability is a normal, typed outcome: a DEGRADED
    result with a reason, never an exception.
    """

    status: ResultStatus
    payload: dict[str, Any] = field(default_factory=dict)
    reason: Optional[FailureReason] = None
    message: str = ""
    attempts: int = 0

    @classmethod
    def live(cls, payload: dict[str, Any], attempts: int = 1) -> "EnrichmentResult":
        return cls(status=ResultStatus.LIVE, payload=dict(payload), attempts=attempts)

    @classmethod
    def degraded(
        cls,
        reason: FailureReason,
        message: str,
        attempts: int = 0,
    ) -> "EnrichmentResult":
        return cls(
            status=ResultStatus.DEGRADED,
            reason=reason,
            message=message,
            attempts=attempts,
        )

    @property
    def is_live(self) -> bool:
        return self.status == ResultStatus.LIVE

    @property
    def is_degraded(self) -> bool:
        return self.status == ResultStatus.DEGRADED

    def to_dict(self) -> dict[str, Any]:
        """Render the JSON body exposed to API consumers.

        Live results are the upstream fields as-is; degraded results use
        the ``enrichedDataStatus`` marker.
        """
        if self.is_live:
            return dict(self.payload)
        return {
            "enrichedDataStatus": UNAVAILABLE_STATUS,
            "message": self.message,
        }
