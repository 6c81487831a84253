"""Multi-stream aggregator: routes samples into channels and emits snapshots.

Producers call the ``ingest_*`` entry points from any thread.  All channel
and state mutation happens under one aggregator-wide lock; windows are small
(at most a minute of samples per stream), so contention is low.  The
snapshot is an immutable :class:`AggregatorState` swapped under the lock,
and the consumer callback runs after the lock is released.

Emission goes through two throttles, one per update origin:

  - general (passive heart rate, daily steps, step deltas), 500 ms default
  - HRV (IBI batches and the HR reported with them), 1000 ms default

Throttle time is arrival time from the aggregator's clock (monotonic ms by
default), never a producer timestamp; streams are not ordered relative to
each other.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Iterable, Union

from biowindow.channels import (
    HeartRateChannel,
    IbiChannel,
    StepsDailyChannel,
    StepsDeltaChannel,
    StreamChannel,
)
from biowindow.config import AggregatorConfig
from biowindow.samples import HeartRateSource, IbiReading, TimedSample, monotonic_ms
from biowindow.state import AggregatorState
from biowindow.throttle import EmissionThrottle

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[AggregatorState], None]
IbiInput = Union[IbiReading, tuple[int, bool]]


class Phase(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def _as_reading(item: IbiInput) -> IbiReading:
    if isinstance(item, IbiReading):
        return item
    ibi_ms, status_normal = item
    return IbiReading(int(ibi_ms), bool(status_normal))


class Aggregator:
    """Sliding-window aggregator over heart rate, steps and IBI streams.

    Args:
        on_snapshot: Consumer callback, called with the new state at most once
            per throttle interval per emission source.
        config: Static settings; defaults to :class:`AggregatorConfig()`.
        clock: Returns the current time in ms for emission throttling.
    """

    def __init__(
        self,
        on_snapshot: SnapshotCallback | None = None,
        config: AggregatorConfig | None = None,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        self.config = config or AggregatorConfig()
        self.on_snapshot = on_snapshot
        self._clock = clock
        cfg = self.config

        self.heart_rate = HeartRateChannel(
            cfg.hr_retention_ms, cfg.tolerance_ms, cfg.hr_min_bpm, cfg.hr_max_bpm
        )
        self.steps_daily = StepsDailyChannel(cfg.steps_daily_retention_ms, cfg.tolerance_ms)
        self.steps_delta = StepsDeltaChannel(cfg.steps_retention_ms, cfg.tolerance_ms)
        self.ibi = IbiChannel(cfg.ibi_retention_ms, cfg.tolerance_ms, cfg.ibi_min_ms, cfg.ibi_max_ms)

        self.general_throttle = EmissionThrottle(cfg.emit_interval_ms)
        self.hrv_throttle = EmissionThrottle(cfg.hrv_emit_interval_ms)

        self._lock = threading.Lock()
        self._phase = Phase.STOPPED
        self._state = AggregatorState.unknown()
        self._dropped_stopped = 0

    @property
    def channels(self) -> tuple[StreamChannel, ...]:
        return (self.heart_rate, self.steps_daily, self.steps_delta, self.ibi)

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._phase is Phase.RUNNING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a session with empty windows and an all-unknown state."""
        with self._lock:
            if self._phase is Phase.RUNNING:
                logger.info("start(): already running")
                return
            self._reset_locked()
            for channel in self.channels:
                channel.dropped = 0
            self._dropped_stopped = 0
            self._phase = Phase.RUNNING
        logger.info("Aggregator started")

    def stop(self) -> None:
        """End the session.  No final snapshot is emitted."""
        with self._lock:
            if self._phase is Phase.STOPPED:
                logger.info("stop(): not running")
                return
            self._phase = Phase.STOPPED
            self._reset_locked()
        logger.info("Aggregator stopped")

    def _reset_locked(self) -> None:
        for channel in self.channels:
            channel.clear()
        self.general_throttle.reset()
        self.hrv_throttle.reset()
        self._state = AggregatorState.unknown()

    # ------------------------------------------------------------------
    # Ingest entry points
    # ------------------------------------------------------------------

    def ingest_heart_rate(
        self,
        bpm: float,
        timestamp_ms: int,
        source: HeartRateSource = HeartRateSource.PASSIVE,
    ) -> bool:
        """Heart rate from either source; the latest arrival wins.

        Returns:
            True if the snapshot changed.
        """
        throttle = (
            self.hrv_throttle if source is HeartRateSource.HRV_TRACKER else self.general_throttle
        )
        return self._ingest(
            [(self.heart_rate, [TimedSample(timestamp_ms, bpm)])], throttle
        )

    def ingest_steps_daily(self, total: int, timestamp_ms: int) -> bool:
        return self._ingest(
            [(self.steps_daily, [TimedSample(timestamp_ms, int(total))])],
            self.general_throttle,
        )

    def ingest_steps_delta(self, delta: int, timestamp_ms: int) -> bool:
        return self._ingest(
            [(self.steps_delta, [TimedSample(timestamp_ms, int(delta))])],
            self.general_throttle,
        )

    def ingest_ibi(
        self,
        readings: Iterable[IbiInput],
        timestamp_ms: int,
        heart_rate_bpm: float | None = None,
    ) -> bool:
        """A batch of IBI readings sharing one timestamp.

        Args:
            readings: ``IbiReading`` objects or ``(ibi_ms, status_normal)``
                pairs, in beat order.
            timestamp_ms: Timestamp of the batch.
            heart_rate_bpm: Optional HR reported with the batch.
        """
        batches = [
            (self.ibi, [TimedSample(timestamp_ms, _as_reading(r)) for r in readings]),
        ]
        if heart_rate_bpm is not None:
            batches.append((self.heart_rate, [TimedSample(timestamp_ms, heart_rate_bpm)]))
        return self._ingest(batches, self.hrv_throttle)

    def _ingest(
        self,
        batches: list[tuple[StreamChannel, list[TimedSample]]],
        throttle: EmissionThrottle,
    ) -> bool:
        emit: AggregatorState | None = None
        with self._lock:
            if self._phase is not Phase.RUNNING:
                count = sum(len(samples) for _, samples in batches)
                self._dropped_stopped += count
                logger.debug("Dropped %d sample(s): aggregator not running", count)
                return False

            admitted = 0
            for channel, samples in batches:
                admitted += channel.ingest_many(samples)
            if not admitted or not self._rebuild_state_locked():
                return False

            if self.on_snapshot is not None:
                now_ms = self._clock()
                if throttle.try_emit(now_ms):
                    emit = self._state
                else:
                    logger.debug("Snapshot throttled at %dms (%r)", now_ms, throttle)

        if emit is not None:
            self._emit(emit)
        return True

    def _rebuild_state_locked(self) -> bool:
        """Swap in a state built from the channels.  Returns True if it changed."""
        new_state = AggregatorState(
            heart_rate_bpm=self.heart_rate.current_value(),
            steps_daily=self.steps_daily.current_value(),
            steps_per_minute=self.steps_delta.current_value(),
            steps_delta_latest=self.steps_delta.latest_delta,
            hrv_rmssd_ms=self.ibi.current_value(),
            sample_count=self.ibi.sample_count,
        )
        if new_state == self._state:
            return False
        self._state = new_state
        return True

    def _emit(self, state: AggregatorState) -> None:
        try:
            self.on_snapshot(state)
        except Exception:
            logger.exception("Snapshot consumer raised")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_snapshot(self, now_ms: int | None = None) -> AggregatorState:
        """Latest state, optionally aged out relative to *now_ms* first."""
        if now_ms is None:
            return self._state
        with self._lock:
            for channel in self.channels:
                channel.refresh(now_ms)
            self._rebuild_state_locked()
            return self._state

    def dropped_counts(self) -> dict[str, int]:
        """Per-channel counts of samples not admitted since the last start."""
        with self._lock:
            counts = {channel.name: channel.dropped for channel in self.channels}
            counts["not_running"] = self._dropped_stopped
        return counts

    def __repr__(self) -> str:
        return f"Aggregator({self._phase.value}, {self._state!r})"
