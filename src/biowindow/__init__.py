"""Sliding-window aggregation of wearable heart-rate, step and IBI streams.

Modules:
    samples    -- TimedSample / IbiReading value types
    window     -- time-bounded ordered sample buffer
    reducers   -- steps-in-window sum and RMSSD
    channels   -- per-signal windows with validity filtering
    state      -- immutable aggregated snapshot
    throttle   -- minimum-interval emission gate
    aggregator -- lifecycle, routing, locking and emission
    feed       -- message types and queue pump for producers
    replay     -- offline replay of JSONL sample logs
"""

from biowindow.aggregator import Aggregator, Phase
from biowindow.config import AggregatorConfig
from biowindow.samples import HeartRateSource, IbiReading, TimedSample
from biowindow.state import AggregatorState
from biowindow.throttle import EmissionThrottle
from biowindow.window import OutOfOrderSample, SlidingWindow

__all__ = [
    "Aggregator",
    "Phase",
    "AggregatorConfig",
    "HeartRateSource",
    "IbiReading",
    "TimedSample",
    "AggregatorState",
    "EmissionThrottle",
    "OutOfOrderSample",
    "SlidingWindow",
]
