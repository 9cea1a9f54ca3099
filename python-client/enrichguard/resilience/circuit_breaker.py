"""Failure-rate circuit breaker for the enrichment service.

Provides per-endpoint circuit breakers with:
- Three states: CLOSED (normal), OPEN (failing), HALF_OPEN (testing)
- Opening on failure ratio over a rolling window, once a minimum call
  volume has been observed
- Lazy recovery testing with a single probe call
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..exceptions import ConfigurationError
from .results import AttemptResult, CallOutcome, ErrorKind
from .window import RollingWindow

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Service failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # Testing if service recovered


class Admission(str, Enum):
    """Answer to a request for permission to call."""

    REJECTED = "REJECTED"
    PERMITTED = "PERMITTED"
    PROBE = "PROBE"  # The single trial call while HALF_OPEN


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for service circuit breaker."""

    volume_threshold: int = 5  # Calls in window before the ratio is trusted
    error_threshold_percent: float = 50.0
    reset_timeout: float = 30.0  # Seconds before trying half-open
    window_span: float = 10.0  # Seconds
    window_buckets: int = 10

    def __post_init__(self):
        if self.volume_threshold < 1:
            raise ConfigurationError(
                f"volume_threshold must be >= 1, got {self.volume_threshold}"
            )
        if not 0 < self.error_threshold_percent <= 100:
            raise ConfigurationError(
                f"error_threshold_percent must be within (0, 100], "
                f"got {self.error_threshold_percent}"
            )
        if self.reset_timeout < 0:
            raise ConfigurationError(f"reset_timeout must be >= 0, got {self.reset_timeout}")


@dataclass(frozen=True)
class BreakerTransition:
    """Emitted to listeners whenever the breaker changes state."""

    name: str
    previous: CircuitState
    current: CircuitState
    at: float


TransitionListener = Callable[[BreakerTransition], None]


class CircuitBreaker:
    """Circuit breaker guarding calls to one endpoint.

    Usage:
        breaker = CircuitBreaker("http://enrich.local/enrich")
        result = await breaker.guard(lambda: policy.execute(executor.attempt, key))

    State and the half-open probe flag are only touched under ``_lock``,
    which is never held across an ``await``.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            name: Endpoint name for logging and events
            config: Circuit breaker configuration
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._window = RollingWindow(
            span=self.config.window_span,
            buckets=self.config.window_buckets,
            clock=clock,
        )
        self._state = CircuitState.CLOSED
        self._opened_at: Optional[float] = None
        self._probe_in_flight = False
        self._listeners: list[TransitionListener] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current state, checking for the timed OPEN -> HALF_OPEN move."""
        with self._lock:
            transitions = self._check_reset_timeout()
            state = self._state
        self._emit(transitions)
        return state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def add_listener(self, listener: TransitionListener) -> None:
        """Subscribe to state transition events."""
        self._listeners.append(listener)

    def acquire(self) -> Admission:
        """Ask whether a call may proceed.

        A PROBE admission must be settled with ``record`` or
        ``release_probe``.
        """
        with self._lock:
            transitions = self._check_reset_timeout()

            if self._state == CircuitState.CLOSED:
                admission = Admission.PERMITTED
            elif self._state == CircuitState.HALF_OPEN and not self._probe_in_flight:
                self._probe_in_flight = True
                admission = Admission.PROBE
            else:
                admission = Admission.REJECTED

        self._emit(transitions)
        return admission

    def record(self, outcome: CallOutcome, admission: Admission = Admission.PERMITTED) -> None:
        """Record the outcome of a permitted call.

        Args:
            outcome: Success or failure of the whole guarded call
            admission: The admission the call was granted
        """
        transitions: list[BreakerTransition] = []

        with self._lock:
            if admission == Admission.PROBE:
                self._probe_in_flight = False
                if self._state == CircuitState.HALF_OPEN:
                    if outcome == CallOutcome.SUCCESS:
                        self._window.clear()
                        transitions.append(self._transition(CircuitState.CLOSED))
                    else:
                        transitions.append(self._open())
            elif self._state == CircuitState.CLOSED:
                self._window.record(outcome)
                ratio, total = self._window.failure_ratio()
                if (
                    total >= self.config.volume_threshold
                    and ratio * 100 >= self.config.error_threshold_percent
                ):
                    logger.warning(
                        f"Circuit breaker {self.name} tripping: "
                        f"{ratio:.0%} failures over {total} calls"
                    )
                    transitions.append(self._open())
            # Non-probe calls finishing after the breaker left CLOSED are stale

        self._emit(transitions)

    def release_probe(self) -> None:
        """Give back an unsettled probe slot, e.g. when the caller went away."""
        with self._lock:
            self._probe_in_flight = False

    async def guard(
        self,
        operation: Callable[[], Awaitable[AttemptResult]],
    ) -> AttemptResult:
        """Run ``operation`` through the breaker's accounting.

        Rejected calls return ``Err(CIRCUIT_OPEN)`` without invoking the
        operation and are not recorded in the window.
        """
        admission = self.acquire()

        if admission == Admission.REJECTED:
            logger.debug(f"Circuit breaker {self.name} rejected call")
            return AttemptResult.failure(
                ErrorKind.CIRCUIT_OPEN,
                detail=f"Circuit breaker {self.name} is OPEN",
                attempts=0,
            )

        try:
            result = await operation()
        except asyncio.CancelledError:
            if admission == Admission.PROBE:
                self.release_probe()
            raise
        except Exception:
            self.record(CallOutcome.FAILURE, admission)
            raise

        self.record(result.outcome, admission)
        return result

    def _check_reset_timeout(self) -> list[BreakerTransition]:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.reset_timeout:
                return [self._transition(CircuitState.HALF_OPEN)]
        return []

    def _open(self) -> BreakerTransition:
        self._opened_at = self._clock()
        return self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState) -> BreakerTransition:
        previous = self._state
        self._state = new_state
        if new_state == CircuitState.HALF_OPEN:
            self._probe_in_flight = False
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
        return BreakerTransition(self.name, previous, new_state, self._clock())

    def _emit(self, transitions: list[BreakerTransition]) -> None:
        for event in transitions:
            if event.current == CircuitState.OPEN:
                logger.warning(
                    f"Circuit breaker {self.name} OPEN ({event.previous.value} -> OPEN)"
                )
            elif event.current == CircuitState.HALF_OPEN:
                logger.info(f"Circuit breaker {self.name} entering HALF_OPEN for recovery test")
            else:
                logger.info(f"Circuit breaker {self.name} CLOSED - service recovered")

            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Transition listener failed for {self.name}")

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._opened_at = None
            self._probe_in_flight = False
            self._window.clear()
        logger.info(f"Circuit breaker {self.name} manually reset")

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status.

        Returns:
            Status dictionary
        """
        with self._lock:
            transitions = self._check_reset_timeout()
            counts = self._window.counts()
            status = {
                "name": self.name,
                "state": self._state.value,
                "failures": counts.failures,
                "successes": counts.successes,
                "total": counts.total,
                "failure_ratio": counts.failure_ratio,
                "opened_at": self._opened_at,
                "probe_in_flight": self._probe_in_flight,
            }
        self._emit(transitions)
        return status


class BreakerRegistry:
    """Per-endpoint circuit breakers.

    Owned by whoever builds the clients; clients sharing a registry and an
    endpoint share one breaker and window.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
    ) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use.

        ``config`` only applies when the breaker is created.
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, config, clock=self._clock)
                self._breakers[name] = breaker
            return breaker

    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    def get_status(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.get_status() for breaker in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._breakers

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)
