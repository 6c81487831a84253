"""The aggregated snapshot handed to consumers.

:class:`AggregatorState` is immutable; the aggregator swaps in a new record
for every update so a reader always sees one consistent point in time.
``None`` means "no data yet" and is never the same as zero.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any

# Broadcast sentinel for unknown fields in the legacy dict form.
NO_DATA = -1


@dataclass(frozen=True)
class AggregatorState:
    """Latest known value of every stream."""

    heart_rate_bpm: float | None = None
    steps_daily: int | None = None
    steps_per_minute: float = 0.0  # steps seen in the trailing window
    steps_delta_latest: int = 0
    hrv_rmssd_ms: float | None = None
    sample_count: int = 0  # IBI samples in the HRV window

    @classmethod
    def unknown(cls) -> AggregatorState:
        return cls()

    @property
    def is_unknown(self) -> bool:
        return self == AggregatorState.unknown()

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (JSON-friendly, unknowns as None)."""
        return asdict(self)

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_legacy_dict(self) -> dict[str, Any]:
        """Broadcast form using ``-1`` for unknown fields."""

        def _or_sentinel(value):
            return NO_DATA if value is None else value

        return {
            "hr_bpm": _or_sentinel(self.heart_rate_bpm),
            "steps_daily": _or_sentinel(self.steps_daily),
            "steps_delta": self.steps_delta_latest,
            "steps_per_min": self.steps_per_minute,
            "hrv_rmssd": _or_sentinel(self.hrv_rmssd_ms),
        }

    def __repr__(self) -> str:
        hr = f"{self.heart_rate_bpm:.0f}bpm" if self.heart_rate_bpm is not None else "?"
        hrv = f"{self.hrv_rmssd_ms:.1f}ms" if self.hrv_rmssd_ms is not None else "?"
        daily = self.steps_daily if self.steps_daily is not None else "?"
        return (
            f"AggregatorState(hr={hr}, steps={daily}, "
            f"spm={self.steps_per_minute:.0f}, hrv={hrv}, n={self.sample_count})"
        )
