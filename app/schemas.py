"""Pydantic schemas for persisted rows and the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AlertKind(str, Enum):
    """Kinds of alert recorded in the ledger."""

    OUT_OF_RANGE = "out_of_range"


class RunStatus(str, Enum):
    """Terminal states of a single pipeline run."""

    in_range = "in_range"
    suppressed = "suppressed"
    alerted = "alerted"
    no_config = "no_config"
    invalid_config = "invalid_config"
    failed = "failed"


class Reading(BaseModel):
    """One timestamped temperature measurement, immutable once stored."""

    model_config = ConfigDict(frozen=True)

    sensor_id: str = Field(..., min_length=1)
    timestamp: datetime
    temperature: Decimal

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class ThresholdConfig(BaseModel):
    """Inclusive acceptable range and notification target for a sensor.

    ``min <= max`` is not enforced here; the evaluator reports a violation.
    """

    model_config = ConfigDict(frozen=True)

    sensor_id: str = Field(..., min_length=1)
    min: Decimal
    max: Decimal
    notify_target: str = Field(..., min_length=1)


class Alert(BaseModel):
    """A fired alert. ``delivered`` records whether the notifier succeeded."""

    model_config = ConfigDict(frozen=True)

    sensor_id: str = Field(..., min_length=1)
    timestamp: datetime
    kind: AlertKind = AlertKind.OUT_OF_RANGE
    value: Decimal
    delivered: bool = True

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class RunResult(BaseModel):
    """Outcome of one pipeline run, returned to the CLI and the API."""

    sensor_id: str
    status: RunStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    processing_ms: Optional[int] = Field(
        default=None, description="Duration in milliseconds from start to finish."
    )
    reading: Optional[Reading] = None
    alert: Optional[Alert] = None
    delivered: Optional[bool] = None
    reason: Optional[str] = None
    error: Optional[str] = None
