"""Window reducers: fold a window's samples into a derived metric.

All functions here are total.  Empty or insufficient input yields the
"no data" result (``None``, or ``0.0`` for the step sum) instead of raising.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from biowindow.samples import IbiReading, TimedSample

# Physiologically plausible IBI range (ms).
IBI_MIN_MS = 300
IBI_MAX_MS = 2000

# Fewer normal intervals than this and RMSSD is not reported.
MIN_RMSSD_SAMPLES = 3


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def steps_in_window(samples: Iterable[TimedSample[int]]) -> float:
    """Sum of the step deltas currently retained.

    With a 60 s window this is reported as steps-per-minute.  It is the count
    observed in the trailing window, not extrapolated when less than a full
    window of history exists.
    """
    return float(sum(int(s.value) for s in samples))


def latest_value(samples: Iterable[TimedSample]):
    """Value of the last sample, or None for an empty sequence."""
    last = None
    for last in samples:
        pass
    return last.value if last is not None else None


# ---------------------------------------------------------------------------
# HRV
# ---------------------------------------------------------------------------


def valid_ibi_values(
    samples: Iterable[TimedSample[IbiReading]],
    min_ms: int = IBI_MIN_MS,
    max_ms: int = IBI_MAX_MS,
) -> list[int]:
    """Normal, in-range IBI values ordered by timestamp.

    The sort is stable, so intervals from one batch keep their order.
    """
    kept = [
        s for s in samples
        if s.value.status_normal and min_ms <= s.value.ibi_ms <= max_ms
    ]
    kept.sort(key=lambda s: s.timestamp_ms)
    return [s.value.ibi_ms for s in kept]


def compute_rmssd(ibi_values: Sequence[float]) -> float | None:
    """Root mean square of successive IBI differences (ms).

    Returns None if fewer than ``MIN_RMSSD_SAMPLES`` intervals are provided.
    """
    if len(ibi_values) < MIN_RMSSD_SAMPLES:
        return None
    arr = np.asarray(ibi_values, dtype=np.float64)
    diffs = np.diff(arr)
    return float(np.sqrt(np.mean(diffs ** 2)))


def rmssd_from_window(
    samples: Iterable[TimedSample[IbiReading]],
    min_ms: int = IBI_MIN_MS,
    max_ms: int = IBI_MAX_MS,
) -> float | None:
    """RMSSD over the valid intervals of a window."""
    return compute_rmssd(valid_ibi_values(samples, min_ms, max_ms))
