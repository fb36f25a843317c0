from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer

from roundcast.config import load_config
from roundcast.core.outcomes import Outcome
from roundcast.engine import SignalEngine
from roundcast.errors import RoundcastError
from roundcast.utils.logging import setup_logging


app = typer.Typer(add_completion=False)

ConfigOption = typer.Option(None, "--config", help="Path to config.yaml")


def _engine(config_path: Optional[Path], log_level: Optional[str] = None) -> SignalEngine:
    cfg = load_config(config_path)
    setup_logging(log_level or cfg.env.LOG_LEVEL)
    return SignalEngine(cfg)


def _start(engine: SignalEngine) -> None:
    try:
        engine.start()
    except RoundcastError as exc:
        typer.echo(f"Source unavailable: {exc}", err=True)
        raise typer.Exit(code=1)


def _print_analysis(engine: SignalEngine) -> None:
    result = engine.analyze()
    category = result.category.value if result.category else "none"
    typer.echo(f"prediction={category} confidence={result.confidence}% ({result.rationale})")


@app.command()
def run(
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = typer.Option(None),
) -> None:
    """Follow the live feed and re-analyse after every new round."""
    engine = _engine(config, log_level)
    stop_event = threading.Event()

    def handle_signal(signum, frame):  # noqa: ANN001, D401
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    def on_outcome(outcome: Outcome) -> None:
        typer.echo(f"[{outcome.occurred_at:%H:%M:%S}] #{outcome.id} {outcome.value} {outcome.category.value}")
        _print_analysis(engine)

    engine.on_outcome(on_outcome)
    _start(engine)
    typer.echo("Running. Press Ctrl+C to stop.")
    try:
        while not stop_event.is_set():
            stop_event.wait(timeout=0.5)
    finally:
        engine.stop()


@app.command()
def analyze(config: Optional[Path] = ConfigOption) -> None:
    """Fetch the current history once and print the fused prediction."""
    engine = _engine(config)
    _start(engine)
    try:
        _print_analysis(engine)
    finally:
        engine.stop()


@app.command()
def signals(
    count: Optional[int] = typer.Option(None, min=1, help="Number of forward slots (default from config)"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Print forward slots. These are a pseudo-random projection, not a forecast."""
    engine = _engine(config)
    _start(engine)
    try:
        for s in engine.generate_signals(count):
            typer.echo(f"{s.index:>2} {s.scheduled_at:%H:%M} {s.category.value:<9} {s.confidence}%  {s.rationale}")
    finally:
        engine.stop()


@app.command()
def alerts(config: Optional[Path] = ConfigOption) -> None:
    engine = _engine(config)
    _start(engine)
    try:
        found = engine.get_alerts()
        if not found:
            typer.echo("No alerts.")
        for a in found:
            typer.echo(f"[{a.severity.value}] {a.kind.value}: {a.message}")
    finally:
        engine.stop()


@app.command()
def simulate(config: Optional[Path] = ConfigOption) -> None:
    """Ask the proxy to inject a test round."""
    engine = _engine(config)
    _start(engine)
    try:
        outcome = engine.simulate_outcome()
        typer.echo(f"Injected #{outcome.id}: {outcome.value} {outcome.category.value}")
        _print_analysis(engine)
    except RoundcastError as exc:
        typer.echo(f"Simulation failed: {exc}", err=True)
        raise typer.Exit(code=1)
    finally:
        engine.stop()


if __name__ == "__main__":
    app()
