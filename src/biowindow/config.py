"""Static aggregator configuration.

Settings are fixed when an :class:`~biowindow.aggregator.Aggregator` is
built.  ``AggregatorConfig.from_env`` reads overrides from the environment:

- BIOWINDOW_HR_RETENTION_MS (default: 60000)
- BIOWINDOW_STEPS_DAILY_RETENTION_MS (default: 86400000)
- BIOWINDOW_STEPS_RETENTION_MS (default: 60000)
- BIOWINDOW_IBI_RETENTION_MS (default: 60000)
- BIOWINDOW_TOLERANCE_MS (default: 2000)
- BIOWINDOW_EMIT_INTERVAL_MS (default: 500)
- BIOWINDOW_HRV_EMIT_INTERVAL_MS (default: 1000)
- BIOWINDOW_HR_MIN / BIOWINDOW_HR_MAX (default: 30 / 220)
- BIOWINDOW_IBI_MIN_MS / BIOWINDOW_IBI_MAX_MS (default: 300 / 2000)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from biowindow.reducers import IBI_MAX_MS, IBI_MIN_MS


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class AggregatorConfig:
    """Window, throttle and validity settings."""

    hr_retention_ms: int = 60_000
    steps_daily_retention_ms: int = 86_400_000
    steps_retention_ms: int = 60_000
    ibi_retention_ms: int = 60_000
    tolerance_ms: int = 2_000  # late arrivals accepted per stream
    emit_interval_ms: int = 500
    hrv_emit_interval_ms: int = 1_000
    hr_min_bpm: int = 30
    hr_max_bpm: int = 220
    ibi_min_ms: int = IBI_MIN_MS
    ibi_max_ms: int = IBI_MAX_MS

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name.endswith(("retention_ms", "interval_ms")) and getattr(self, f.name) <= 0:
                raise ValueError(f"{f.name} must be positive")
        if self.tolerance_ms < 0:
            raise ValueError("tolerance_ms must not be negative")
        if self.hr_min_bpm > self.hr_max_bpm:
            raise ValueError("hr_min_bpm must not exceed hr_max_bpm")
        if self.ibi_min_ms > self.ibi_max_ms:
            raise ValueError("ibi_min_ms must not exceed ibi_max_ms")

    @classmethod
    def from_env(cls) -> AggregatorConfig:
        d = cls()
        return cls(
            hr_retention_ms=_env_int("BIOWINDOW_HR_RETENTION_MS", d.hr_retention_ms),
            steps_daily_retention_ms=_env_int(
                "BIOWINDOW_STEPS_DAILY_RETENTION_MS", d.steps_daily_retention_ms
            ),
            steps_retention_ms=_env_int("BIOWINDOW_STEPS_RETENTION_MS", d.steps_retention_ms),
            ibi_retention_ms=_env_int("BIOWINDOW_IBI_RETENTION_MS", d.ibi_retention_ms),
            tolerance_ms=_env_int("BIOWINDOW_TOLERANCE_MS", d.tolerance_ms),
            emit_interval_ms=_env_int("BIOWINDOW_EMIT_INTERVAL_MS", d.emit_interval_ms),
            hrv_emit_interval_ms=_env_int(
                "BIOWINDOW_HRV_EMIT_INTERVAL_MS", d.hrv_emit_interval_ms
            ),
            hr_min_bpm=_env_int("BIOWINDOW_HR_MIN", d.hr_min_bpm),
            hr_max_bpm=_env_int("BIOWINDOW_HR_MAX", d.hr_max_bpm),
            ibi_min_ms=_env_int("BIOWINDOW_IBI_MIN_MS", d.ibi_min_ms),
            ibi_max_ms=_env_int("BIOWINDOW_IBI_MAX_MS", d.ibi_max_ms),
        )
