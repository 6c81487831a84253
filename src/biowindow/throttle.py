"""Minimum-interval gate for snapshot emission."""

from __future__ import annotations


class EmissionThrottle:
    """Allow at most one emission per ``min_interval_ms``.

    The first call after construction or :meth:`reset` always passes.  Not
    thread-safe; the aggregator calls it under its lock.
    """

    def __init__(self, min_interval_ms: int) -> None:
        if min_interval_ms <= 0:
            raise ValueError("min_interval_ms must be positive")
        self.min_interval_ms = int(min_interval_ms)
        self.last_emit_at: int | None = None

    def try_emit(self, now_ms: int) -> bool:
        """Return True and record *now_ms* if an emission is allowed."""
        if self.last_emit_at is not None and now_ms - self.last_emit_at < self.min_interval_ms:
            return False
        self.last_emit_at = now_ms
        return True

    def reset(self) -> None:
        self.last_emit_at = None

    def __repr__(self) -> str:
        return f"EmissionThrottle({self.min_interval_ms}ms, last={self.last_emit_at})"
