"""Replay recorded sample logs through an aggregator for offline analysis."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from biowindow.aggregator import Aggregator
from biowindow.config import AggregatorConfig
from biowindow.feed import dispatch, message_from_dict
from biowindow.state import AggregatorState


def replay_file(
    log_path: str,
    output_path: str | None = None,
    verbose: bool = False,
    config: AggregatorConfig | None = None,
) -> list[dict]:
    """Replay a .jsonl sample log through a fresh aggregator.

    Args:
        log_path: Path to the .jsonl sample log.
        output_path: Optional path to write the emitted snapshots as JSON.
        verbose: If True, print skipped lines and every emitted snapshot.
        config: Aggregator settings (defaults if None).

    Returns:
        List of emitted snapshot records, each ``{"line", "timestamp_ms",
        "state"}``.  The last element is the final snapshot, flagged with
        ``"final": True``.
    """
    path = Path(log_path)
    if not path.exists():
        print(f"File not found: {log_path}")
        return []

    snapshots: list[dict] = []
    current = {"line": 0, "timestamp_ms": None}

    def _on_snapshot(state: AggregatorState) -> None:
        snapshots.append({**current, "state": state.to_dict()})
        if verbose:
            print(f"  [{current['timestamp_ms']}ms] {state!r}")

    # Logged timestamps stand in for arrival time.
    aggregator = Aggregator(
        on_snapshot=_on_snapshot,
        config=config,
        clock=lambda: current["timestamp_ms"],
    )
    aggregator.start()

    total = 0
    ingested = 0
    last_ts: int | None = None

    print(f"Replaying {path.name}...\n")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                message = message_from_dict(json.loads(line))
            except json.JSONDecodeError:
                if verbose:
                    print(f"  [line {line_num}] Invalid JSON, skipping")
                continue
            except ValueError as e:
                if verbose:
                    print(f"  [line {line_num}] {e}, skipping")
                continue

            total += 1
            current["line"] = line_num
            current["timestamp_ms"] = message.timestamp_ms
            last_ts = message.timestamp_ms if last_ts is None else max(last_ts, message.timestamp_ms)
            if dispatch(aggregator, message):
                ingested += 1

    final = aggregator.current_snapshot(last_ts)
    snapshots.append({"line": None, "timestamp_ms": last_ts, "state": final.to_dict(), "final": True})
    dropped = sum(aggregator.dropped_counts().values())
    aggregator.stop()

    print(f"\nSummary: {total} messages, {ingested} changed state, "
          f"{dropped} dropped, {len(snapshots) - 1} snapshots emitted")
    print(f"Final: {final!r}")

    if output_path:
        with open(output_path, "w") as out:
            json.dump(snapshots, out, indent=2)
        print(f"Output written to {output_path}")

    return snapshots


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m biowindow.replay <samples.jsonl> [output.json]")
        sys.exit(1)

    log_path = sys.argv[1]
    output_path = sys.argv[2] if len(sys.argv) > 2 and not sys.argv[2].startswith("-") else None
    verbose = "--verbose" in sys.argv or "-v" in sys.argv

    replay_file(log_path, output_path, verbose)


if __name__ == "__main__":
    main()
