"""Time-bounded ordered sample buffer.

A :class:`SlidingWindow` keeps samples ordered by timestamp and drops the
oldest ones once they fall out of the retention period.  Appending and
trimming are separate operations: :meth:`SlidingWindow.push` is cheap and
never evicts, :meth:`SlidingWindow.evict` is called explicitly before reads.

The window is not thread-safe; the owning channel serializes access.
"""

from __future__ import annotations

from collections import deque
from typing import Generic, Iterator, TypeVar

from biowindow.samples import TimedSample

T = TypeVar("T")


class OutOfOrderSample(ValueError):
    """A sample arrived later than the window's out-of-order tolerance."""

    def __init__(self, timestamp_ms: int, newest_ms: int, tolerance_ms: int) -> None:
        self.timestamp_ms = timestamp_ms
        self.newest_ms = newest_ms
        self.tolerance_ms = tolerance_ms
        super().__init__(
            f"sample at {timestamp_ms}ms is {newest_ms - timestamp_ms}ms older than "
            f"the newest retained sample ({newest_ms}ms, tolerance {tolerance_ms}ms)"
        )


class _Snapshot(Generic[T]):
    """Restartable view over a copy of the window's samples."""

    __slots__ = ("_samples",)

    def __init__(self, samples: tuple[TimedSample[T], ...]) -> None:
        self._samples = samples

    def __iter__(self) -> Iterator[TimedSample[T]]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"<window snapshot of {len(self._samples)} samples>"


class SlidingWindow(Generic[T]):
    """Append-mostly buffer of :class:`TimedSample` bounded by age.

    Args:
        retention_ms: Samples older than ``now - retention_ms`` are evicted.
        tolerance_ms: How far behind the newest sample a late arrival may be
            and still be inserted in order.  ``0`` rejects any regression.
    """

    def __init__(self, retention_ms: int, tolerance_ms: int = 0) -> None:
        if retention_ms <= 0:
            raise ValueError("retention_ms must be positive")
        if tolerance_ms < 0:
            raise ValueError("tolerance_ms must not be negative")
        self._retention_ms = int(retention_ms)
        self._tolerance_ms = int(tolerance_ms)
        self._samples: deque[TimedSample[T]] = deque()

    @property
    def retention_ms(self) -> int:
        return self._retention_ms

    @property
    def tolerance_ms(self) -> int:
        return self._tolerance_ms

    @property
    def latest(self) -> TimedSample[T] | None:
        """Newest retained sample by timestamp, or None if empty."""
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def push(self, sample: TimedSample[T]) -> None:
        """Add *sample*, keeping the buffer ordered by timestamp.

        Raises:
            OutOfOrderSample: if the sample is older than the newest retained
                one by more than the tolerance.  The window is left unchanged.
        """
        if not self._samples or sample.timestamp_ms >= self._samples[-1].timestamp_ms:
            self._samples.append(sample)
            return

        newest = self._samples[-1].timestamp_ms
        if newest - sample.timestamp_ms > self._tolerance_ms:
            raise OutOfOrderSample(sample.timestamp_ms, newest, self._tolerance_ms)

        # Late but tolerated: walk back from the tail, late arrivals land near it.
        idx = len(self._samples) - 1
        while idx > 0 and self._samples[idx - 1].timestamp_ms > sample.timestamp_ms:
            idx -= 1
        self._samples.insert(idx, sample)

    def evict(self, now_ms: int) -> int:
        """Drop leading samples with ``timestamp < now_ms - retention_ms``.

        Returns:
            Number of samples removed.
        """
        cutoff = now_ms - self._retention_ms
        removed = 0
        while self._samples and self._samples[0].timestamp_ms < cutoff:
            self._samples.popleft()
            removed += 1
        return removed

    def snapshot(self) -> _Snapshot[T]:
        """Currently retained samples in timestamp order.

        The result can be iterated any number of times and is unaffected by
        later pushes or evictions.
        """
        return _Snapshot(tuple(self._samples))

    def clear(self) -> None:
        self._samples.clear()

    def __repr__(self) -> str:
        return (
            f"SlidingWindow(retention={self._retention_ms}ms, "
            f"samples={len(self._samples)})"
        )
