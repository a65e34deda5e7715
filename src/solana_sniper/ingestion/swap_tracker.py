"""
Swap event tracker for a watched pool.

Keeps a bounded rolling history of swap volumes and derives simple
volume statistics from it. Log events arrive in bursts from the
subscription callback, so every mutation happens under a lock.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterator, Sequence

from .models import SwapEvent

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 100
DEFAULT_TREND_WINDOW = 5


class Trend(str, Enum):
    """Direction of the latest sample relative to the recent mean."""
    INSUFFICIENT = "insufficient"
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class VolumeSample:
    """A single volume observation."""
    volume: Decimal
    timestamp: float


def compute_trend(values: Sequence[Decimal], window: int = DEFAULT_TREND_WINDOW) -> Trend:
    """
    Compare the latest value against the mean of the last ``window`` values.

    Args:
        values: Samples in arrival order (oldest first)
        window: Number of trailing samples to average

    Returns:
        Trend.INSUFFICIENT if fewer than ``window`` samples exist,
        otherwise RISING / FALLING / STABLE (strict comparisons).

    Examples:
        >>> compute_trend([Decimal(v) for v in (1, 2, 3, 4, 5)])
        <Trend.RISING: 'rising'>
        >>> compute_trend([Decimal(v) for v in (5, 4, 3, 2, 1)])
        <Trend.FALLING: 'falling'>
    """
    if window <= 0:
        raise ValueError(f"Trend window must be positive, got {window}")
    if len(values) < window:
        return Trend.INSUFFICIENT

    recent = list(values)[-window:]
    mean = sum(recent, Decimal("0")) / Decimal(window)
    latest = recent[-1]

    if latest > mean:
        return Trend.RISING
    if latest < mean:
        return Trend.FALLING
    return Trend.STABLE


class MarketHistory:
    """
    Fixed-capacity ring buffer of volume samples.

    Appends at the tail; once full, each append evicts the oldest sample
    at the head. Not thread-safe on its own, the tracker owns the lock.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._samples: deque[VolumeSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: VolumeSample) -> None:
        self._samples.append(sample)

    def volumes(self) -> list[Decimal]:
        return [s.volume for s in self._samples]

    def snapshot(self) -> list[VolumeSample]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[VolumeSample]:
        return iter(list(self._samples))


class SwapEventTracker:
    """
    Consumes structured swap events for one pool.

    Usage:
        tracker = SwapEventTracker(pool_id="58oQ...")

        tracker.ingest(event)      # from the log stream consumer
        tracker.trend()            # Trend.RISING / FALLING / ...
        tracker.total_volume       # cumulative volume since start
    """

    def __init__(
        self,
        pool_id: str | None = None,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        trend_window: int = DEFAULT_TREND_WINDOW,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            pool_id: Only events for this pool are kept (None accepts all)
            capacity: Maximum number of samples retained in history
            trend_window: Number of trailing samples used by trend()
        """
        self._pool_id = pool_id
        self._history = MarketHistory(capacity)
        self._trend_window = trend_window
        self._total_volume = Decimal("0")
        self._events_ingested = 0
        self._lock = threading.Lock()

    @property
    def pool_id(self) -> str | None:
        return self._pool_id

    @property
    def total_volume(self) -> Decimal:
        """Cumulative volume of every ingested swap."""
        with self._lock:
            return self._total_volume

    @property
    def events_ingested(self) -> int:
        with self._lock:
            return self._events_ingested

    def ingest(self, event: SwapEvent) -> bool:
        """
        Record a swap event.

        Returns:
            True if the event was recorded, False if it belongs to another pool
        """
        if self._pool_id is not None and event.pool_id != self._pool_id:
            logger.debug(f"Ignoring swap for unwatched pool {event.pool_id}")
            return False

        with self._lock:
            self._history.append(VolumeSample(volume=event.amount, timestamp=event.observed_at))
            self._total_volume += event.amount
            self._events_ingested += 1
            total = self._total_volume

        logger.debug(f"Swap detected | Amount: {event.amount:.2f} SOL | Total Volume: {total:.2f} SOL")
        return True

    def trend(self) -> Trend:
        """Volume trend over the configured trailing window."""
        with self._lock:
            volumes = self._history.volumes()
        return compute_trend(volumes, self._trend_window)

    def history(self) -> list[VolumeSample]:
        """Copy of the retained samples, oldest first."""
        with self._lock:
            return self._history.snapshot()

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
