from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Iterator, List

import pytest
from typer.testing import CliRunner

from app.schemas import Alert, Reading, RunResult, RunStatus
from cli.app import app
from datastore.tables import build_default_alert_ledger, build_default_reading_store
from settings import get_settings

NOW = datetime.now(timezone.utc).replace(microsecond=0)


class StubPipeline:
    def __init__(self, result: RunResult) -> None:
        self.result = result
        self.sensor_ids: List[str] = []

    def run(self, sensor_id: str) -> RunResult:
        self.sensor_ids.append(sensor_id)
        return self.result.model_copy(update={"sensor_id": sensor_id})


def _result(status: RunStatus, **fields) -> RunResult:
    return RunResult(sensor_id="sensor1", status=status, started_at=NOW, processing_ms=5, **fields)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def isolated_tables(monkeypatch, tmp_path) -> Iterator[None]:
    monkeypatch.setenv("TEMPGUARD_READINGS_PATH", str(tmp_path / "readings.jsonl"))
    monkeypatch.setenv("TEMPGUARD_ALERTS_PATH", str(tmp_path / "alerts.jsonl"))
    monkeypatch.setenv("DISPLAY_TIMEZONE", "UTC")
    caches = (get_settings, build_default_reading_store, build_default_alert_ledger)
    _clear_caches(caches)
    yield
    _clear_caches(caches)


def _install_stub(monkeypatch, stub: StubPipeline) -> dict:
    state = {"closed": False}

    @contextmanager
    def factory():
        try:
            yield stub
        finally:
            state["closed"] = True

    monkeypatch.setattr("cli.app.open_pipeline", factory)
    return state


def test_run_reports_alert_and_exits_zero(monkeypatch, runner: CliRunner, isolated_tables) -> None:
    reading = Reading(sensor_id="sensor1", timestamp=NOW, temperature=Decimal("9.3"))
    alert = Alert(sensor_id="sensor1", timestamp=NOW, value=Decimal("9.3"))
    stub = StubPipeline(_result(RunStatus.alerted, reading=reading, alert=alert, delivered=True))
    state = _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["run", "--sensor-id", "fridge-7"])

    assert result.exit_code == 0
    assert "status: alerted" in result.stdout
    assert "temperature: 9.3 °C" in result.stdout
    assert "delivered: True" in result.stdout
    assert stub.sensor_ids == ["fridge-7"]
    assert state["closed"] is True


def test_run_defaults_to_configured_sensor(monkeypatch, runner: CliRunner, isolated_tables) -> None:
    monkeypatch.setenv("TEMPGUARD_SENSOR_ID", "walk-in")
    get_settings.cache_clear()
    stub = StubPipeline(_result(RunStatus.no_config, reason="no threshold config"))
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0
    assert stub.sensor_ids == ["walk-in"]
    assert "reason: no threshold config" in result.stdout


@pytest.mark.parametrize("status", [RunStatus.failed, RunStatus.invalid_config])
def test_run_exits_non_zero_on_failure(
    monkeypatch, runner: CliRunner, isolated_tables, status: RunStatus
) -> None:
    _install_stub(monkeypatch, StubPipeline(_result(status, error="sensor API unreachable")))

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert f"status: {status.value}" in result.stdout


def test_alerts_lists_window(runner: CliRunner, isolated_tables) -> None:
    ledger = build_default_alert_ledger()
    ledger.append(Alert(sensor_id="sensor1", timestamp=NOW - timedelta(hours=2), value=Decimal("9.3")))
    ledger.append(
        Alert(
            sensor_id="sensor1",
            timestamp=NOW - timedelta(hours=30),
            value=Decimal("1.1"),
            delivered=False,
        )
    )

    result = runner.invoke(app, ["alerts", "--hours", "24"])

    assert result.exit_code == 0
    assert "9.3 °C (delivered)" in result.stdout
    assert "1.1" not in result.stdout


def test_alerts_empty(runner: CliRunner, isolated_tables) -> None:
    result = runner.invoke(app, ["alerts", "--sensor-id", "other"])

    assert result.exit_code == 0
    assert "No alerts recorded." in result.stdout


def test_readings_lists_latest_first(runner: CliRunner, isolated_tables) -> None:
    store = build_default_reading_store()
    store.append(Reading(sensor_id="sensor1", timestamp=NOW - timedelta(hours=1), temperature=Decimal("4.0")))
    store.append(Reading(sensor_id="sensor1", timestamp=NOW, temperature=Decimal("5.5")))

    result = runner.invoke(app, ["readings", "--limit", "1"])

    assert result.exit_code == 0
    assert "5.5 °C" in result.stdout
    assert "4.0 °C" not in result.stdout
