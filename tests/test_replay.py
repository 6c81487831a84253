"""Tests for biowindow.replay -- offline replay of JSONL sample logs."""

from __future__ import annotations

import json

from biowindow.config import AggregatorConfig
from biowindow.replay import replay_file

from tests.conftest import write_jsonl


STEPS_LOG = [
    {"kind": "steps_delta", "timestamp_ms": 0, "value": 5},
    {"kind": "steps_delta", "timestamp_ms": 10_000, "value": 3},
    {"kind": "steps_delta", "timestamp_ms": 50_000, "value": 2},
    {"kind": "heart_rate", "timestamp_ms": 50_000, "value": 72},
]


class TestReplayFile:
    def test_nonexistent_file(self, capsys):
        assert replay_file("/nonexistent/path/samples.jsonl") == []
        assert "File not found" in capsys.readouterr().out

    def test_empty_file(self, tmp_path, capsys):
        f = tmp_path / "empty.jsonl"
        f.write_text("")
        result = replay_file(str(f))
        assert len(result) == 1
        assert result[0]["final"] is True
        assert result[0]["state"]["heart_rate_bpm"] is None
        assert "0 messages" in capsys.readouterr().out

    def test_snapshots_and_final_state(self, tmp_path, capsys):
        f = write_jsonl(tmp_path / "samples.jsonl", STEPS_LOG)
        result = replay_file(str(f))
        # 0s, 10s and 50s steps emit; the HR at 50s is throttled
        emitted, final = result[:-1], result[-1]
        assert [r["timestamp_ms"] for r in emitted] == [0, 10_000, 50_000]
        assert emitted[0]["line"] == 1
        assert final["state"]["steps_per_minute"] == 10.0
        assert final["state"]["heart_rate_bpm"] == 72.0
        out = capsys.readouterr().out
        assert "4 messages" in out
        assert "3 snapshots emitted" in out

    def test_final_state_is_aged_to_last_timestamp(self, tmp_path):
        entries = STEPS_LOG + [{"kind": "heart_rate", "timestamp_ms": 70_001, "value": 75}]
        f = write_jsonl(tmp_path / "samples.jsonl", entries)
        final = replay_file(str(f))[-1]
        assert final["timestamp_ms"] == 70_001
        assert final["state"]["steps_per_minute"] == 2.0

    def test_invalid_lines_skipped(self, tmp_path, capsys):
        f = tmp_path / "samples.jsonl"
        f.write_text(
            "not json\n"
            + json.dumps({"kind": "spo2", "timestamp_ms": 0, "value": 97}) + "\n"
            + "[1, 2]\n"
            + '{"kind": "steps_delta", "timestamp_ms": 0, "value": 1e400}\n'
            + json.dumps({"kind": "heart_rate", "timestamp_ms": 0, "value": 61}) + "\n"
        )
        result = replay_file(str(f), verbose=True)
        out = capsys.readouterr().out
        assert "Invalid JSON" in out
        assert "unknown message kind" in out
        assert "must be an object" in out
        assert "malformed 'steps_delta' record" in out
        assert "1 messages" in out
        assert result[-1]["state"]["heart_rate_bpm"] == 61.0

    def test_dropped_samples_counted(self, tmp_path, capsys):
        entries = [
            {"kind": "heart_rate", "timestamp_ms": 0, "value": 10},
            {"kind": "ibi", "timestamp_ms": 0, "readings": [[50, 0], [800, 1]]},
        ]
        f = write_jsonl(tmp_path / "samples.jsonl", entries)
        result = replay_file(str(f))
        assert "3 dropped" in capsys.readouterr().out
        assert len(result) == 1

    def test_output_file(self, tmp_path, capsys):
        f = write_jsonl(tmp_path / "samples.jsonl", STEPS_LOG)
        out_f = tmp_path / "snapshots.json"
        replay_file(str(f), output_path=str(out_f))
        assert "Output written to" in capsys.readouterr().out
        decoded = json.loads(out_f.read_text())
        assert isinstance(decoded, list)
        assert decoded[-1]["final"] is True

    def test_custom_config(self, tmp_path):
        f = write_jsonl(tmp_path / "samples.jsonl", STEPS_LOG)
        result = replay_file(str(f), config=AggregatorConfig(steps_retention_ms=30_000))
        assert result[-1]["state"]["steps_per_minute"] == 2.0
