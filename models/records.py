"""Domain values passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Union

from app.schemas import AlertKind

DEFAULT_COOLDOWN_WINDOW = timedelta(hours=12)
DEFAULT_ALERT_CAP = 1


@dataclass(frozen=True, slots=True)
class SourceReading:
    """Normalized value returned by a reading source, before persistence."""

    timestamp: datetime
    temperature: Decimal


@dataclass(frozen=True, slots=True)
class CooldownPolicy:
    """At most ``cap`` alerts per sensor within any trailing ``window``.

    With ``count_failed_deliveries`` disabled, alerts whose notification was
    not delivered do not count toward the cap.
    """

    window: timedelta = DEFAULT_COOLDOWN_WINDOW
    cap: int = DEFAULT_ALERT_CAP
    count_failed_deliveries: bool = True

    def __post_init__(self) -> None:
        if self.window <= timedelta(0):
            raise ValueError("Cooldown window must be positive.")
        if self.cap < 1:
            raise ValueError("Alert cap must be at least 1.")


@dataclass(frozen=True, slots=True)
class InRange:
    pass


@dataclass(frozen=True, slots=True)
class Suppressed:
    reason: str
    last_alert_time: Optional[datetime]


@dataclass(frozen=True, slots=True)
class Fire:
    kind: AlertKind
    value: Decimal


Decision = Union[InRange, Suppressed, Fire]
