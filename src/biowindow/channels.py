"""Per-signal stream channels.

Each channel owns one :class:`SlidingWindow`, filters incoming samples with
its validity predicate and recomputes its derived value from the whole
current window after every admitted sample.  Rejected samples are counted in
``dropped``; sensor noise is expected, so nothing here raises on bad input.

Channels are not locked themselves; the aggregator serializes access.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from biowindow.reducers import (
    IBI_MAX_MS,
    IBI_MIN_MS,
    latest_value,
    rmssd_from_window,
    steps_in_window,
)
from biowindow.samples import IbiReading, TimedSample
from biowindow.window import OutOfOrderSample, SlidingWindow

logger = logging.getLogger(__name__)


class StreamChannel:
    """Base channel: window, validity filter and derived metric."""

    name = "stream"

    def __init__(self, retention_ms: int, tolerance_ms: int = 0) -> None:
        self.window: SlidingWindow = SlidingWindow(retention_ms, tolerance_ms)
        self.last_derived: Any = None
        self.dropped = 0

    # -- hooks ---------------------------------------------------------------

    def is_valid(self, value: Any) -> bool:
        return True

    def derive(self, samples: Iterable[TimedSample]) -> Any:
        raise NotImplementedError

    # -- operations ----------------------------------------------------------

    def ingest(self, sample: TimedSample) -> bool:
        """Admit a single sample.  Returns False if it was dropped."""
        return self.ingest_many([sample]) > 0

    def ingest_many(self, samples: Iterable[TimedSample]) -> int:
        """Admit a batch sharing one recomputation.

        Returns:
            Number of samples admitted.
        """
        admitted = 0
        for sample in samples:
            if self._admit(sample):
                admitted += 1
        if admitted:
            self.window.evict(self.window.latest.timestamp_ms)
            self._recompute()
        return admitted

    def refresh(self, now_ms: int) -> None:
        """Evict relative to *now_ms* and recompute, ageing out stale data."""
        if self.window.evict(now_ms):
            self._recompute()

    def current_value(self) -> Any:
        return self.last_derived

    def clear(self) -> None:
        self.window.clear()
        self.last_derived = None

    # -- internals -----------------------------------------------------------

    def _admit(self, sample: TimedSample) -> bool:
        if not self.is_valid(sample.value):
            self.dropped += 1
            logger.debug("%s: dropped invalid sample %r", self.name, sample)
            return False
        try:
            self.window.push(sample)
        except OutOfOrderSample as e:
            self.dropped += 1
            logger.warning("%s: dropped out-of-order sample: %s", self.name, e)
            return False
        return True

    def _recompute(self) -> None:
        self.last_derived = self.derive(self.window.snapshot())

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(value={self.last_derived!r}, "
            f"samples={len(self.window)}, dropped={self.dropped})"
        )


class HeartRateChannel(StreamChannel):
    """Heart rate in bpm; the most recently arrived reading wins."""

    name = "heart_rate"

    def __init__(
        self,
        retention_ms: int,
        tolerance_ms: int = 0,
        min_bpm: int = 30,
        max_bpm: int = 220,
    ) -> None:
        super().__init__(retention_ms, tolerance_ms)
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self._last_arrived: TimedSample | None = None

    def is_valid(self, value: Any) -> bool:
        return self.min_bpm <= value <= self.max_bpm

    def _admit(self, sample: TimedSample) -> bool:
        admitted = super()._admit(sample)
        if admitted:
            self._last_arrived = sample
        return admitted

    def derive(self, samples: Iterable[TimedSample]) -> float | None:
        retained = list(samples)
        # Arrival order beats timestamp order while the reading is retained.
        if self._last_arrived is not None and any(s is self._last_arrived for s in retained):
            return float(self._last_arrived.value)
        value = latest_value(retained)
        return float(value) if value is not None else None

    def clear(self) -> None:
        super().clear()
        self._last_arrived = None


class StepsDailyChannel(StreamChannel):
    """Cumulative steps for the current day."""

    name = "steps_daily"

    def is_valid(self, value: Any) -> bool:
        return value >= 0

    def derive(self, samples: Iterable[TimedSample]) -> int | None:
        value = latest_value(samples)
        return int(value) if value is not None else None


class StepsDeltaChannel(StreamChannel):
    """Step deltas; derives the trailing-window step count."""

    name = "steps_delta"

    def __init__(self, retention_ms: int, tolerance_ms: int = 0) -> None:
        super().__init__(retention_ms, tolerance_ms)
        self.last_derived = 0.0
        self.latest_delta = 0

    def is_valid(self, value: Any) -> bool:
        return value >= 0

    def _admit(self, sample: TimedSample) -> bool:
        admitted = super()._admit(sample)
        if admitted:
            self.latest_delta = int(sample.value)
        return admitted

    def derive(self, samples: Iterable[TimedSample]) -> float:
        return steps_in_window(samples)

    def clear(self) -> None:
        super().clear()
        self.last_derived = 0.0
        self.latest_delta = 0


class IbiChannel(StreamChannel):
    """Inter-beat intervals; derives RMSSD over the window."""

    name = "ibi"

    def __init__(
        self,
        retention_ms: int,
        tolerance_ms: int = 0,
        min_ms: int = IBI_MIN_MS,
        max_ms: int = IBI_MAX_MS,
    ) -> None:
        super().__init__(retention_ms, tolerance_ms)
        self.min_ms = min_ms
        self.max_ms = max_ms

    @property
    def sample_count(self) -> int:
        return len(self.window)

    def is_valid(self, value: IbiReading) -> bool:
        return value.status_normal and self.min_ms <= value.ibi_ms <= self.max_ms

    def derive(self, samples: Iterable[TimedSample]) -> float | None:
        return rmssd_from_window(samples, self.min_ms, self.max_ms)
