"""Rolling failure window.

Time is split into fixed-size buckets; each bucket counts successes and
failures. Buckets older than the window span are evicted before every
read or write, so memory stays bounded regardless of call volume.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from ..exceptions import ConfigurationError
from .results import CallOutcome


@dataclass
class _Bucket:
    index: int
    successes: int = 0
    failures: int = 0


@dataclass(frozen=True)
class WindowCounts:
    """Totals over the live buckets."""

    successes: int
    failures: int

    @property
    def total(self) -> int:
        return self.successes + self.failures

    @property
    def failure_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.failures / self.total


class RollingWindow:
    """Bucketed success/failure counter over a sliding time span."""

    def __init__(
        self,
        span: float = 10.0,
        buckets: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize window.

        Args:
            span: Window length in seconds
            buckets: Number of buckets the span is divided into
            clock: Monotonic time source in seconds
        """
        if span <= 0:
            raise ConfigurationError(f"Window span must be positive, got {span}")
        if buckets < 1:
            raise ConfigurationError(f"Window needs at least one bucket, got {buckets}")

        self.span = span
        self.bucket_count = buckets
        self.bucket_size = span / buckets
        self._clock = clock
        self._buckets: deque[_Bucket] = deque()
        self._lock = threading.Lock()

    def _current_index(self) -> int:
        return int(self._clock() // self.bucket_size)

    def _evict(self, current: int) -> None:
        # A bucket is live while it overlaps the last `span` seconds
        oldest_live = current - self.bucket_count + 1
        while self._buckets and self._buckets[0].index < oldest_live:
            self._buckets.popleft()

    def record(self, outcome: CallOutcome) -> None:
        """Count one outcome in the bucket for the current time."""
        with self._lock:
            current = self._current_index()
            self._evict(current)

            if not self._buckets or self._buckets[-1].index != current:
                self._buckets.append(_Bucket(index=current))

            bucket = self._buckets[-1]
            if outcome == CallOutcome.SUCCESS:
                bucket.successes += 1
            else:
                bucket.failures += 1

    def counts(self) -> WindowCounts:
        """Sum counts across live buckets."""
        with self._lock:
            self._evict(self._current_index())
            return WindowCounts(
                successes=sum(b.successes for b in self._buckets),
                failures=sum(b.failures for b in self._buckets),
            )

    def failure_ratio(self) -> tuple[float, int]:
        """Return ``(failures / total, total)``; ``(0.0, 0)`` when empty."""
        counts = self.counts()
        return counts.failure_ratio, counts.total

    def clear(self) -> None:
        """Drop all recorded history."""
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        """Number of live buckets."""
        with self._lock:
            self._evict(self._current_index())
            return len(self._buckets)
