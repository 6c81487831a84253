"""CLI for the biowindow signal aggregator."""

import asyncio
import logging

import click


@click.group()
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Logging level.")
def main(log_level: str) -> None:
    """biowindow: sliding-window heart-rate, steps and HRV aggregation."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Write emitted snapshots as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Show skipped lines and every snapshot.")
def replay(file: str, output: str | None, verbose: bool) -> None:
    """Replay a JSONL sample log through the aggregator."""
    from biowindow.config import AggregatorConfig
    from biowindow.replay import replay_file

    snapshots = replay_file(file, output, verbose, config=AggregatorConfig.from_env())
    if snapshots:
        click.echo("\n--- Final Snapshot ---")
        click.echo(_format_state(snapshots[-1]["state"]))


@main.command()
@click.option("--address", "-a", default=None, help="BLE address to connect to.")
@click.option("--duration", "-d", default=None, type=float, help="Stream duration in seconds.")
@click.option("--legacy", is_flag=True, help="Print snapshots with -1 for unknown fields.")
def stream(address: str | None, duration: float | None, legacy: bool) -> None:
    """Stream a BLE heart-rate strap through the aggregator."""
    from biowindow.aggregator import Aggregator
    from biowindow.config import AggregatorConfig
    from biowindow.sources.ble import stream_heart_rate

    def _on_snapshot(state) -> None:
        click.echo(state.to_legacy_dict() if legacy else repr(state))

    aggregator = Aggregator(on_snapshot=_on_snapshot, config=AggregatorConfig.from_env())
    aggregator.start()
    try:
        asyncio.run(stream_heart_rate(aggregator, address, duration))
    except KeyboardInterrupt:
        click.echo("\nStopped.")
    finally:
        aggregator.stop()


def _format_state(state: dict) -> str:
    def _fmt(value, unit: str = "") -> str:
        if value is None:
            return "--"
        if isinstance(value, float):
            return f"{value:.1f}{unit}"
        return f"{value}{unit}"

    return "\n".join([
        f"  Heart rate:   {_fmt(state['heart_rate_bpm'], ' bpm')}",
        f"  Steps today:  {_fmt(state['steps_daily'])}",
        f"  Steps/min:    {_fmt(state['steps_per_minute'])}",
        f"  Last delta:   {_fmt(state['steps_delta_latest'])}",
        f"  HRV (RMSSD):  {_fmt(state['hrv_rmssd_ms'], ' ms')}",
        f"  IBI samples:  {_fmt(state['sample_count'])}",
    ])


if __name__ == "__main__":
    main()
