"""Tests for biowindow.feed -- message parsing, dispatch and the queue pump."""

from __future__ import annotations

import asyncio

import pytest

from biowindow.feed import (
    HeartRateSample,
    IbiBatch,
    StepsDailyTotal,
    StepsDelta,
    dispatch,
    message_from_dict,
    pump,
)
from biowindow.samples import HeartRateSource, IbiReading


class TestMessageFromDict:
    def test_heart_rate_default_source(self):
        msg = message_from_dict({"kind": "heart_rate", "timestamp_ms": 10, "value": 72})
        assert msg == HeartRateSample(72.0, 10, HeartRateSource.PASSIVE)

    def test_heart_rate_hrv_source(self):
        msg = message_from_dict(
            {"kind": "heart_rate", "timestamp_ms": 10, "value": 72, "source": "hrv_tracker"}
        )
        assert msg.source is HeartRateSource.HRV_TRACKER

    def test_steps(self):
        assert message_from_dict({"kind": "steps_daily", "timestamp_ms": 1, "value": 900}) == \
            StepsDailyTotal(900, 1)
        assert message_from_dict({"kind": "steps_delta", "timestamp_ms": 1, "value": 4}) == \
            StepsDelta(4, 1)

    def test_ibi_status_codes(self):
        msg = message_from_dict(
            {"kind": "ibi", "timestamp_ms": 5, "readings": [[800, 0], [810, 1]], "hr": 74}
        )
        assert msg.readings == (IbiReading(800, True), IbiReading(810, False))
        assert msg.heart_rate_bpm == 74.0

    def test_ibi_without_hr(self):
        msg = message_from_dict({"kind": "ibi", "timestamp_ms": 5, "readings": []})
        assert msg.heart_rate_bpm is None

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="unknown message kind"):
            message_from_dict({"kind": "spo2", "timestamp_ms": 0, "value": 97})

    def test_missing_field(self):
        with pytest.raises(ValueError, match="malformed"):
            message_from_dict({"kind": "steps_delta", "value": 4})

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            message_from_dict(
                {"kind": "heart_rate", "timestamp_ms": 0, "value": 70, "source": "radar"}
            )

    @pytest.mark.parametrize("record", [[1, 2], "heart_rate", 42, None])
    def test_non_object_record(self, record):
        with pytest.raises(ValueError, match="must be an object"):
            message_from_dict(record)

    def test_infinite_integer_field(self):
        with pytest.raises(ValueError, match="malformed"):
            message_from_dict({"kind": "steps_delta", "timestamp_ms": 0, "value": float("inf")})


class TestDispatch:
    def test_routes_every_kind(self, aggregator):
        dispatch(aggregator, HeartRateSample(66.0, 0))
        dispatch(aggregator, StepsDailyTotal(500, 0))
        dispatch(aggregator, StepsDelta(6, 0))
        dispatch(aggregator, IbiBatch((IbiReading(800), IbiReading(810), IbiReading(790)), 0))
        state = aggregator.current_snapshot()
        assert state.heart_rate_bpm == 66.0
        assert state.steps_daily == 500
        assert state.steps_per_minute == 6.0
        assert state.hrv_rmssd_ms == pytest.approx(15.811, abs=1e-3)

    def test_unsupported_message(self, aggregator):
        with pytest.raises(TypeError):
            dispatch(aggregator, {"kind": "heart_rate"})


class TestPump:
    def test_drains_until_sentinel(self, aggregator):
        messages = [StepsDelta(3, 0), StepsDelta(4, 1000), HeartRateSample(70.0, 1000)]

        async def _run() -> int:
            queue: asyncio.Queue = asyncio.Queue()
            consumer = asyncio.create_task(pump(queue, aggregator))
            for m in messages:
                await queue.put(m)
            await queue.put(None)
            return await consumer

        assert asyncio.run(_run()) == 3
        state = aggregator.current_snapshot()
        assert state.steps_per_minute == 7.0
        assert state.heart_rate_bpm == 70.0
