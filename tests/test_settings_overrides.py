from __future__ import annotations

from datetime import timedelta
from typing import Iterable

from datastore.tables import build_default_alert_ledger, build_default_reading_store
from datastore.thresholds import build_default_registry
from services.pipeline import open_pipeline, policy_from_settings
from settings import get_settings

_CACHES = (
    get_settings,
    build_default_reading_store,
    build_default_alert_ledger,
    build_default_registry,
)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    readings_path = tmp_path / "readings.jsonl"
    alerts_path = tmp_path / "alerts.jsonl"
    thresholds_path = tmp_path / "thresholds.json"

    monkeypatch.setenv("TEMPGUARD_READINGS_PATH", str(readings_path))
    monkeypatch.setenv("TEMPGUARD_ALERTS_PATH", str(alerts_path))
    monkeypatch.setenv("TEMPGUARD_THRESHOLDS_PATH", str(thresholds_path))
    monkeypatch.setenv("ALERT_COOLDOWN_HOURS", "24")
    monkeypatch.setenv("ALERT_CAP", "2")
    monkeypatch.setenv("ALERT_COUNT_FAILED_DELIVERIES", "no")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "America/New_York")
    monkeypatch.setenv("SENSOR_API_URL", "https://sensors.example.com/")
    _clear_caches(_CACHES)

    try:
        settings = get_settings()
        policy = policy_from_settings(settings)

        assert settings.sensor_api_url == "https://sensors.example.com"
        assert policy.window == timedelta(hours=24)
        assert policy.cap == 2
        assert policy.count_failed_deliveries is False

        with open_pipeline() as pipeline:
            assert pipeline.readings.persistence_path == readings_path
            assert pipeline.ledger.persistence_path == alerts_path
            assert pipeline.registry.persistence_path == thresholds_path
            assert pipeline.evaluator.policy == policy
            assert pipeline.display_timezone == "America/New_York"
    finally:
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TEMPGUARD_READINGS_PATH", str(tmp_path / "readings.jsonl"))
    monkeypatch.setenv("TEMPGUARD_ALERTS_PATH", str(tmp_path / "alerts.jsonl"))
    monkeypatch.setenv("TEMPGUARD_THRESHOLDS_PATH", str(tmp_path / "thresholds.json"))
    monkeypatch.setenv("ALERT_COOLDOWN_HOURS", "-3")
    monkeypatch.setenv("ALERT_CAP", "many")
    monkeypatch.setenv("ALERT_COUNT_FAILED_DELIVERIES", "maybe")
    monkeypatch.setenv("SMTP_PORT", " ")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "Mars/Olympus")
    _clear_caches(_CACHES)

    try:
        settings = get_settings()

        assert settings.cooldown_window == timedelta(hours=12)
        assert settings.alert_cap == 1
        assert settings.count_failed_deliveries is True
        assert settings.smtp_port == 587
        assert settings.display_timezone == "Europe/Madrid"

        with open_pipeline() as pipeline:
            assert pipeline.display_timezone == "Europe/Madrid"
    finally:
        _clear_caches(_CACHES)
