from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import typer

from app.schemas import RunStatus
from cli.render import render_alerts, render_readings, render_result
from datastore.tables import build_default_alert_ledger, build_default_reading_store
from logging_config import configure_logging
from services.errors import TempGuardError
from services.pipeline import open_pipeline
from settings import Settings, get_settings

_FAILED_STATUSES = {RunStatus.failed, RunStatus.invalid_config}


@dataclass
class CLIState:
    settings: Settings


app = typer.Typer(
    help="TempGuard: temperature threshold alerting for remote sensors.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging(log_level.upper() if log_level else None)
    ctx.obj = CLIState(settings=get_settings())


@app.command("run")
def run_command(
    ctx: typer.Context,
    sensor_id: Optional[str] = typer.Option(
        None, "--sensor-id", "-s", help="Sensor to process (defaults to TEMPGUARD_SENSOR_ID)."
    ),
) -> None:
    """Fetch one reading, store it, and alert if it is out of range."""
    state = _get_state(ctx)
    target = sensor_id or state.settings.sensor_id
    with open_pipeline() as pipeline:
        result = pipeline.run(target)
    render_result(result, state.settings.display_timezone)
    if result.status in _FAILED_STATUSES:
        raise typer.Exit(code=1)


@app.command("alerts")
def alerts_command(
    ctx: typer.Context,
    sensor_id: Optional[str] = typer.Option(None, "--sensor-id", "-s", help="Sensor to inspect."),
    hours: Optional[float] = typer.Option(
        None, "--hours", min=0.0, help="Trailing window in hours (defaults to the cooldown window)."
    ),
) -> None:
    """List recorded alerts within a trailing window."""
    state = _get_state(ctx)
    target = sensor_id or state.settings.sensor_id
    window = timedelta(hours=hours) if hours is not None else state.settings.cooldown_window
    since = datetime.now(timezone.utc) - window
    try:
        alerts = build_default_alert_ledger().recent(target, since)
    except TempGuardError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    render_alerts(target, alerts, state.settings.display_timezone)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    sensor_id: Optional[str] = typer.Option(None, "--sensor-id", "-s", help="Sensor to inspect."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum readings to show."),
) -> None:
    """List the most recent stored readings."""
    state = _get_state(ctx)
    target = sensor_id or state.settings.sensor_id
    try:
        readings = build_default_reading_store().latest(target, limit=limit)
    except TempGuardError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    render_readings(target, readings, state.settings.display_timezone)
