"""Threshold and cooldown decision logic for sensor readings."""

from __future__ import annotations

from typing import Iterable, List

from app.schemas import Alert, AlertKind, Reading, ThresholdConfig
from models.records import CooldownPolicy, Decision, Fire, InRange, Suppressed
from services.errors import InvalidThresholdError


class AlertEvaluator:
    """Pure decision component that can be unit tested in isolation."""

    def __init__(self, policy: CooldownPolicy | None = None) -> None:
        self.policy = policy or CooldownPolicy()

    def evaluate(
        self,
        reading: Reading,
        config: ThresholdConfig,
        history: Iterable[Alert],
    ) -> Decision:
        """Decide whether ``reading`` is in range, suppressed, or must fire.

        The range is inclusive on both ends. An alert counts toward the cap when
        it belongs to the same sensor and is strictly newer than
        ``reading.timestamp - window``; ``history`` may be in any order.
        """
        if config.min > config.max:
            raise InvalidThresholdError(
                f"Threshold for sensor {config.sensor_id!r} has min {config.min} "
                f"greater than max {config.max}."
            )

        value = reading.temperature
        if config.min <= value <= config.max:
            return InRange()

        counted = self.alerts_in_window(reading, history)
        if len(counted) >= self.policy.cap:
            last_alert_time = max(alert.timestamp for alert in counted)
            return Suppressed(
                reason=(
                    f"{len(counted)} alert(s) within the last "
                    f"{_describe_window(self.policy)} (cap {self.policy.cap})"
                ),
                last_alert_time=last_alert_time,
            )

        return Fire(kind=AlertKind.OUT_OF_RANGE, value=value)

    def alerts_in_window(self, reading: Reading, history: Iterable[Alert]) -> List[Alert]:
        window_start = reading.timestamp - self.policy.window
        counted: List[Alert] = []
        for alert in history:
            if alert.sensor_id != reading.sensor_id:
                continue
            if alert.timestamp <= window_start:
                continue
            if not alert.delivered and not self.policy.count_failed_deliveries:
                continue
            counted.append(alert)
        return counted


def _describe_window(policy: CooldownPolicy) -> str:
    hours = policy.window.total_seconds() / 3600
    return f"{hours:g}h"
