"""Typed outcomes shared by the resilience layers.

Network failures travel as values past the attempt executor, so the
retry policy, breaker and client branch on ``ErrorKind`` instead of
catching exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classification of a failed attempt."""

    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    SERVER_ERROR = "SERVER_ERROR"  # 5xx
    CLIENT_ERROR = "CLIENT_ERROR"  # 4xx and other unexpected statuses
    DECODE_ERROR = "DECODE_ERROR"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"  # Rejected by the breaker, no I/O done


class CallOutcome(str, Enum):
    """Outcome of one guarded invocation, as seen by the rolling window."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class AttemptResult:
    """Result of an attempt, or of a whole retried sequence.

    Exactly one of ``payload`` / ``error`` is meaningful: ``error`` is None
    on success.
    """

    payload: Optional[dict[str, Any]] = None
    error: Optional[ErrorKind] = None
    status_code: Optional[int] = None
    detail: str = ""
    attempts: int = 1

    @classmethod
    def success(cls, payload: dict[str, Any], attempts: int = 1) -> "AttemptResult":
        return cls(payload=payload, attempts=attempts)

    @classmethod
    def failure(
        cls,
        error: ErrorKind,
        status_code: Optional[int] = None,
        detail: str = "",
        attempts: int = 1,
    ) -> "AttemptResult":
        return cls(error=error, status_code=status_code, detail=detail, attempts=attempts)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def outcome(self) -> CallOutcome:
        return CallOutcome.SUCCESS if self.ok else CallOutcome.FAILURE

    def with_attempts(self, attempts: int) -> "AttemptResult":
        """Copy of this result carrying a different attempt count."""
        return AttemptResult(
            payload=self.payload,
            error=self.error,
            status_code=self.status_code,
            detail=self.detail,
            attempts=attempts,
        )

    def describe(self) -> str:
        if self.ok:
            return "ok"
        if self.status_code is not None:
            return f"{self.error.value}({self.status_code})"
        return self.error.value
