"""
Temporal window store for classified samples.

Keeps a bounded, timestamp-ordered buffer and drops samples once they age past
the retention horizon. Eviction happens lazily on every push and every read.
"""

import bisect
import logging
import threading
import time
from typing import Callable, List, Optional

from .models import ClassifiedSample

logger = logging.getLogger(__name__)


class TemporalWindowStore:
    """
    Time-ordered buffer of ClassifiedSample with lazy eviction.

    Responsibilities:
    - Ordered insertion by sample timestamp (out-of-order pushes are safe)
    - Eviction of samples with now - timestamp >= horizon
    - Windowed reads, oldest first
    """

    def __init__(
        self,
        horizon_sec: float = 120.0,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize window store.

        Args:
            horizon_sec: Retention horizon in seconds
            clock: Monotonic time source (defaults to time.monotonic)
        """
        if horizon_sec <= 0:
            raise ValueError(f"horizon_sec must be positive, got {horizon_sec}")
        self.horizon_sec = horizon_sec
        self._clock = clock or time.monotonic
        self._samples: List[ClassifiedSample] = []
        self._lock = threading.Lock()

    def push(self, sample: ClassifiedSample, now: Optional[float] = None) -> None:
        """
        Insert a sample at its timestamp position, then evict stale entries.

        Args:
            sample: Sample to store
            now: Reference time (defaults to the store clock)
        """
        with self._lock:
            bisect.insort_right(self._samples, sample, key=lambda s: s.timestamp)
            self._evict_locked(self.horizon_sec, self._now(now))

    def evict_older_than(self, horizon_sec: Optional[float] = None, now: Optional[float] = None) -> int:
        """
        Drop samples whose age reached the horizon.

        Returns:
            Number of evicted samples
        """
        with self._lock:
            horizon = self.horizon_sec if horizon_sec is None else horizon_sec
            return self._evict_locked(horizon, self._now(now))

    def samples_within(self, window_sec: float, now: Optional[float] = None) -> List[ClassifiedSample]:
        """
        Samples younger than window_sec, oldest first.

        Args:
            window_sec: Window length in seconds
            now: Reference time (defaults to the store clock)
        """
        now = self._now(now)
        with self._lock:
            self._evict_locked(self.horizon_sec, now)
            return [s for s in self._samples if now - s.timestamp < window_sec]

    def samples(self, now: Optional[float] = None) -> List[ClassifiedSample]:
        """All retained samples, oldest first."""
        return self.samples_within(self.horizon_sec, now)

    def latest(self, count: int, now: Optional[float] = None) -> List[ClassifiedSample]:
        """Most recent retained samples, oldest first."""
        now = self._now(now)
        with self._lock:
            self._evict_locked(self.horizon_sec, now)
            return list(self._samples[-count:]) if count > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _evict_locked(self, horizon_sec: float, now: float) -> int:
        # Samples are sorted, so stale ones form a prefix
        cut = 0
        while cut < len(self._samples) and now - self._samples[cut].timestamp >= horizon_sec:
            cut += 1
        if cut:
            del self._samples[:cut]
            logger.debug(f"Evicted {cut} samples older than {horizon_sec}s")
        return cut
