from __future__ import annotations

from typing import Any, Iterable, Sequence

import typer

from app.schemas import Alert, Reading, RunResult, RunStatus
from notifications.message import format_local

_STATUS_COLORS = {
    RunStatus.in_range: typer.colors.GREEN,
    RunStatus.suppressed: typer.colors.YELLOW,
    RunStatus.alerted: typer.colors.YELLOW,
    RunStatus.no_config: typer.colors.YELLOW,
    RunStatus.invalid_config: typer.colors.RED,
    RunStatus.failed: typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_result(result: RunResult, zone: str) -> None:
    echo_heading("Run Result")
    typer.secho(f"status: {result.status.value}", fg=_STATUS_COLORS.get(result.status))
    echo_key_values(
        [
            ("sensor_id", result.sensor_id),
            ("started_at", result.started_at.isoformat()),
            ("processing_ms", result.processing_ms),
        ]
    )
    if result.reading is not None:
        echo_key_values(
            [
                ("temperature", f"{result.reading.temperature} °C"),
                ("measured_at", format_local(result.reading.timestamp, zone)),
            ]
        )
    if result.alert is not None:
        echo_key_values([("alert", result.alert.kind.value), ("delivered", result.delivered)])
    if result.reason:
        echo_key_values([("reason", result.reason)])
    if result.error:
        typer.secho(f"error: {result.error}", fg=typer.colors.RED, err=True)


def render_alerts(sensor_id: str, alerts: Sequence[Alert], zone: str) -> None:
    echo_heading(f"Alerts for {sensor_id}")
    if not alerts:
        typer.echo("No alerts recorded.")
        return
    for alert in alerts:
        delivery = "delivered" if alert.delivered else "NOT delivered"
        typer.echo(
            f"  - {format_local(alert.timestamp, zone)}: {alert.kind.value} "
            f"{alert.value} °C ({delivery})"
        )


def render_readings(sensor_id: str, readings: Sequence[Reading], zone: str) -> None:
    echo_heading(f"Readings for {sensor_id}")
    if not readings:
        typer.echo("No readings stored.")
        return
    for reading in readings:
        typer.echo(f"  - {format_local(reading.timestamp, zone)}: {reading.temperature} °C")
