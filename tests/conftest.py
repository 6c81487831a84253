"""Shared fixtures and helpers for the biowindow test suite."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from biowindow.aggregator import Aggregator
from biowindow.config import AggregatorConfig
from biowindow.samples import IbiReading, TimedSample


# ---------------------------------------------------------------------------
# Sample-building helpers
# ---------------------------------------------------------------------------


def ibi_samples(values: list[int], timestamp_ms: int = 0, normal: bool = True) -> list[TimedSample]:
    """IBI samples sharing one timestamp, as delivered in a single batch."""
    return [TimedSample(timestamp_ms, IbiReading(v, normal)) for v in values]


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


# ---------------------------------------------------------------------------
# Aggregator fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced millisecond clock for emission tests."""

    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class SnapshotRecorder:
    """Consumer callback that keeps every emitted state."""

    def __init__(self) -> None:
        self.states = []

    def __call__(self, state) -> None:
        self.states.append(state)

    def __len__(self) -> int:
        return len(self.states)

    @property
    def last(self):
        return self.states[-1]


@pytest.fixture
def recorder() -> SnapshotRecorder:
    return SnapshotRecorder()


@pytest.fixture
def config() -> AggregatorConfig:
    return AggregatorConfig()


@pytest.fixture
def aggregator(recorder, config, clock) -> Aggregator:
    """A started aggregator wired to ``recorder`` and driven by ``clock``."""
    agg = Aggregator(on_snapshot=recorder, config=config, clock=clock)
    agg.start()
    yield agg
    agg.stop()
