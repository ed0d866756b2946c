"""Orchestration of a single fetch, store, evaluate and notify run."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional, Protocol
from zoneinfo import ZoneInfo

from app.schemas import Alert, Reading, RunResult, RunStatus, ThresholdConfig
from datastore.tables import build_default_alert_ledger, build_default_reading_store
from datastore.thresholds import build_default_registry
from models.records import CooldownPolicy, Fire, InRange, SourceReading, Suppressed
from notifications.message import build_alert_message
from notifications.smtp import SmtpNotifier
from services.errors import InvalidThresholdError, NotifyError, SourceError, StoreError
from services.evaluator import AlertEvaluator
from settings import Settings, get_settings
from sources.http_source import HttpReadingSource

logger = logging.getLogger(__name__)


class ReadingSource(Protocol):
    def fetch(self, sensor_id: str) -> SourceReading: ...


class ReadingStore(Protocol):
    def append(self, reading: Reading) -> None: ...


class ThresholdRegistry(Protocol):
    def get(self, sensor_id: str) -> Optional[ThresholdConfig]: ...


class AlertLedger(Protocol):
    def recent(self, sensor_id: str, since: datetime) -> List[Alert]: ...

    def append(self, alert: Alert) -> None: ...


class Notifier(Protocol):
    def send(self, target: str, subject: str, body: str, html: Optional[str] = None) -> None: ...


class AlertPipeline:
    """Runs the alerting steps for one sensor, strictly in sequence.

    Failures before the evaluation step end the run with ``failed`` and leave
    the alert ledger untouched. A notifier failure is logged and the alert is
    still recorded with ``delivered=False``.
    """

    def __init__(
        self,
        source: ReadingSource,
        readings: ReadingStore,
        registry: ThresholdRegistry,
        ledger: AlertLedger,
        notifier: Notifier,
        evaluator: AlertEvaluator,
        display_timezone: str = "UTC",
    ) -> None:
        # Unknown zones fail here rather than mid-run.
        ZoneInfo(display_timezone)
        self.source = source
        self.readings = readings
        self.registry = registry
        self.ledger = ledger
        self.notifier = notifier
        self.evaluator = evaluator
        self.display_timezone = display_timezone

    def run(self, sensor_id: str) -> RunResult:
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()

        def finish(status: RunStatus, **fields: Any) -> RunResult:
            processing_ms = int((time.perf_counter() - start_time) * 1000)
            result = RunResult(
                sensor_id=sensor_id,
                status=status,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                processing_ms=processing_ms,
                **fields,
            )
            logger.info(
                "Run finished",
                extra={"sensor_id": sensor_id, "status": status.value, "processing_ms": processing_ms},
            )
            return result

        try:
            fetched = self.source.fetch(sensor_id)
        except SourceError as exc:
            logger.error(
                "Could not fetch reading; aborting run",
                extra={"sensor_id": sensor_id, "error": str(exc)},
            )
            return finish(RunStatus.failed, error=str(exc))

        reading = Reading(
            sensor_id=sensor_id, timestamp=fetched.timestamp, temperature=fetched.temperature
        )
        try:
            self.readings.append(reading)
        except StoreError as exc:
            logger.error(
                "Could not store reading; aborting run",
                extra={"sensor_id": sensor_id, "temperature": reading.temperature, "error": str(exc)},
            )
            return finish(RunStatus.failed, reading=reading, error=str(exc))
        logger.info(
            "Stored reading", extra={"sensor_id": sensor_id, "temperature": reading.temperature}
        )

        try:
            config = self.registry.get(sensor_id)
        except StoreError as exc:
            logger.error(
                "Could not load threshold config; aborting run",
                extra={"sensor_id": sensor_id, "error": str(exc)},
            )
            return finish(RunStatus.failed, reading=reading, error=str(exc))
        if config is None:
            logger.warning(
                "No threshold config; reading stored without evaluation",
                extra={"sensor_id": sensor_id},
            )
            return finish(RunStatus.no_config, reading=reading, reason="no threshold config")

        since = reading.timestamp - self.evaluator.policy.window
        try:
            history = self.ledger.recent(sensor_id, since)
        except StoreError as exc:
            logger.error(
                "Could not load alert history; aborting run",
                extra={"sensor_id": sensor_id, "error": str(exc)},
            )
            return finish(RunStatus.failed, reading=reading, error=str(exc))

        try:
            decision = self.evaluator.evaluate(reading, config, history)
        except InvalidThresholdError as exc:
            logger.error(
                "Invalid threshold config", extra={"sensor_id": sensor_id, "error": str(exc)}
            )
            return finish(RunStatus.invalid_config, reading=reading, error=str(exc))

        if isinstance(decision, InRange):
            logger.info(
                "Temperature within range",
                extra={"sensor_id": sensor_id, "temperature": reading.temperature},
            )
            return finish(RunStatus.in_range, reading=reading)

        if isinstance(decision, Suppressed):
            logger.warning(
                "Out-of-range temperature; alert suppressed by cooldown",
                extra={
                    "sensor_id": sensor_id,
                    "temperature": reading.temperature,
                    "reason": decision.reason,
                    "alert_count": len(self.evaluator.alerts_in_window(reading, history)),
                },
            )
            return finish(RunStatus.suppressed, reading=reading, reason=decision.reason)

        return self._fire(reading, config, decision, finish)

    def _fire(
        self,
        reading: Reading,
        config: ThresholdConfig,
        decision: Fire,
        finish: Callable[..., RunResult],
    ) -> RunResult:
        sensor_id = reading.sensor_id
        logger.warning(
            "Out-of-range temperature; firing alert",
            extra={
                "sensor_id": sensor_id,
                "temperature": reading.temperature,
                "reason": f"range {config.min}-{config.max}",
            },
        )

        message = build_alert_message(reading, config, self.display_timezone)
        delivered = True
        try:
            self.notifier.send(config.notify_target, message.subject, message.text, html=message.html)
        except NotifyError as exc:
            delivered = False
            logger.warning(
                "Alert delivery failed; recording alert anyway",
                extra={"sensor_id": sensor_id, "target": config.notify_target, "error": str(exc)},
            )
        else:
            logger.info(
                "Alert delivered", extra={"sensor_id": sensor_id, "target": config.notify_target}
            )

        alert = Alert(
            sensor_id=sensor_id,
            timestamp=reading.timestamp,
            kind=decision.kind,
            value=decision.value,
            delivered=delivered,
        )
        try:
            self.ledger.append(alert)
        except StoreError as exc:
            logger.error(
                "Could not record alert",
                extra={"sensor_id": sensor_id, "delivered": delivered, "error": str(exc)},
            )
            return finish(RunStatus.failed, reading=reading, delivered=delivered, error=str(exc))

        return finish(RunStatus.alerted, reading=reading, alert=alert, delivered=delivered)


def policy_from_settings(settings: Settings) -> CooldownPolicy:
    return CooldownPolicy(
        window=settings.cooldown_window,
        cap=settings.alert_cap,
        count_failed_deliveries=settings.count_failed_deliveries,
    )


@contextmanager
def open_pipeline() -> Iterator[AlertPipeline]:
    """Wire a pipeline from settings; the HTTP source is closed on exit."""
    settings = get_settings()
    source = HttpReadingSource.from_settings(settings)
    try:
        yield AlertPipeline(
            source=source,
            readings=build_default_reading_store(),
            registry=build_default_registry(),
            ledger=build_default_alert_ledger(),
            notifier=SmtpNotifier.from_settings(settings),
            evaluator=AlertEvaluator(policy_from_settings(settings)),
            display_timezone=settings.display_timezone,
        )
    finally:
        source.close()
