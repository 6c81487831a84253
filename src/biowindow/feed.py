"""Message-passing boundary between producers and the aggregator.

Producers (BLE notifications, replayed logs, platform callbacks) wrap their
readings in the message types below and either call :func:`dispatch`
directly or put them on an ``asyncio.Queue`` drained by :func:`pump`.  The
aggregator itself stays synchronous.

JSON record form (one object per line in a sample log)::

    {"kind": "heart_rate", "timestamp_ms": 1000, "value": 72, "source": "passive"}
    {"kind": "steps_daily", "timestamp_ms": 1000, "value": 5400}
    {"kind": "steps_delta", "timestamp_ms": 1000, "value": 12}
    {"kind": "ibi", "timestamp_ms": 1000, "readings": [[810, 0], [805, 0]], "hr": 74}

IBI readings are ``[ibi_ms, status_code]`` pairs (status 0 = normal).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Union

from biowindow.aggregator import Aggregator
from biowindow.samples import HeartRateSource, IbiReading


@dataclass(frozen=True)
class HeartRateSample:
    bpm: float
    timestamp_ms: int
    source: HeartRateSource = HeartRateSource.PASSIVE


@dataclass(frozen=True)
class StepsDailyTotal:
    total: int
    timestamp_ms: int


@dataclass(frozen=True)
class StepsDelta:
    delta: int
    timestamp_ms: int


@dataclass(frozen=True)
class IbiBatch:
    readings: tuple[IbiReading, ...]
    timestamp_ms: int
    heart_rate_bpm: float | None = None


Message = Union[HeartRateSample, StepsDailyTotal, StepsDelta, IbiBatch]


def dispatch(aggregator: Aggregator, message: Message) -> bool:
    """Route *message* to the matching ingest entry point.

    Returns:
        True if the aggregator's snapshot changed.
    """
    if isinstance(message, HeartRateSample):
        return aggregator.ingest_heart_rate(message.bpm, message.timestamp_ms, message.source)
    if isinstance(message, StepsDailyTotal):
        return aggregator.ingest_steps_daily(message.total, message.timestamp_ms)
    if isinstance(message, StepsDelta):
        return aggregator.ingest_steps_delta(message.delta, message.timestamp_ms)
    if isinstance(message, IbiBatch):
        return aggregator.ingest_ibi(
            message.readings, message.timestamp_ms, message.heart_rate_bpm
        )
    raise TypeError(f"unsupported message type: {type(message).__name__}")


def message_from_dict(record: dict[str, Any]) -> Message:
    """Parse the JSON record form of a message.

    Raises:
        ValueError: on a non-object record, an unknown ``kind``, or missing or
            out-of-range fields.
    """
    if not isinstance(record, dict):
        raise ValueError(f"record must be an object, got {type(record).__name__}")
    kind = record.get("kind")
    try:
        ts = int(record["timestamp_ms"])
        if kind == "heart_rate":
            source = HeartRateSource(record.get("source", HeartRateSource.PASSIVE.value))
            return HeartRateSample(float(record["value"]), ts, source)
        if kind == "steps_daily":
            return StepsDailyTotal(int(record["value"]), ts)
        if kind == "steps_delta":
            return StepsDelta(int(record["value"]), ts)
        if kind == "ibi":
            readings = tuple(
                IbiReading.from_status(ibi, status) for ibi, status in record["readings"]
            )
            hr = record.get("hr")
            return IbiBatch(readings, ts, float(hr) if hr is not None else None)
    except (KeyError, TypeError, OverflowError) as e:
        raise ValueError(f"malformed {kind!r} record: {e}") from e
    raise ValueError(f"unknown message kind: {kind!r}")


async def pump(queue: asyncio.Queue, aggregator: Aggregator) -> int:
    """Drain *queue* into *aggregator* until a ``None`` sentinel arrives.

    Returns:
        Number of messages dispatched.
    """
    count = 0
    while True:
        message = await queue.get()
        try:
            if message is None:
                return count
            dispatch(aggregator, message)
            count += 1
        finally:
            queue.task_done()
