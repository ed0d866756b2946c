"""Presentation helpers for alert notifications."""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import NamedTuple
from zoneinfo import ZoneInfo

from app.schemas import Reading, ThresholdConfig

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class AlertMessage(NamedTuple):
    subject: str
    text: str
    html: str


def to_local(instant: datetime, zone: str) -> datetime:
    """Convert a UTC instant to ``zone`` for display only."""
    return instant.astimezone(ZoneInfo(zone))


def format_local(instant: datetime, zone: str) -> str:
    return f"{to_local(instant, zone).strftime(LOCAL_TIME_FORMAT)} ({zone})"


def build_alert_message(reading: Reading, config: ThresholdConfig, zone: str) -> AlertMessage:
    local_time = format_local(reading.timestamp, zone)
    subject = f"TempGuard - temperature alert ({reading.sensor_id})"
    lines = [
        ("Sensor", reading.sensor_id),
        ("Temperature", f"{reading.temperature} °C"),
        ("Time (local)", local_time),
        ("Allowed range", f"{config.min} - {config.max} °C"),
    ]
    text = "An out-of-range temperature was detected:\n\n" + "\n".join(
        f"- {label}: {value}" for label, value in lines
    )
    items = "\n".join(
        f"    <li><strong>{escape(label)}:</strong> {escape(value)}</li>" for label, value in lines
    )
    html = f"<p>An out-of-range temperature was detected:</p>\n<ul>\n{items}\n</ul>"
    return AlertMessage(subject=subject, text=text, html=html)
