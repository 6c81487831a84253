"""Sample types flowing through every window.

A :class:`TimedSample` pairs a value with the monotonic millisecond timestamp
it was produced at.  The value types are plain ints for heart rate and steps,
and :class:`IbiReading` for inter-beat intervals, which carry a status flag.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


def monotonic_ms() -> int:
    """Current monotonic time in milliseconds."""
    return int(time.monotonic() * 1000)


# Vendor IBI status code for a normal beat; anything else is flagged.
IBI_STATUS_NORMAL = 0


class HeartRateSource(str, Enum):
    """Origin of a heart-rate reading."""

    PASSIVE = "passive"  # platform passive monitoring
    HRV_TRACKER = "hrv_tracker"  # HR reported alongside IBI data


@dataclass(frozen=True)
class TimedSample(Generic[T]):
    """A value paired with its arrival timestamp (monotonic ms)."""

    timestamp_ms: int
    value: T

    def __repr__(self) -> str:
        return f"TimedSample(t={self.timestamp_ms}ms, {self.value!r})"


@dataclass(frozen=True)
class IbiReading:
    """A single inter-beat interval with its validity flag."""

    ibi_ms: int
    status_normal: bool = True

    @classmethod
    def from_status(cls, ibi_ms: int, status_code: int) -> IbiReading:
        """Build a reading from a vendor status code (0 = normal)."""
        return cls(ibi_ms=int(ibi_ms), status_normal=status_code == IBI_STATUS_NORMAL)

    def __repr__(self) -> str:
        flag = "" if self.status_normal else " [FLAGGED]"
        return f"IbiReading({self.ibi_ms}ms{flag})"
