from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


_SENSOR_ID_ENV = "TEMPGUARD_SENSOR_ID"
_READINGS_PATH_ENV = "TEMPGUARD_READINGS_PATH"
_ALERTS_PATH_ENV = "TEMPGUARD_ALERTS_PATH"
_THRESHOLDS_PATH_ENV = "TEMPGUARD_THRESHOLDS_PATH"
_COOLDOWN_HOURS_ENV = "ALERT_COOLDOWN_HOURS"
_ALERT_CAP_ENV = "ALERT_CAP"
_COUNT_FAILED_ENV = "ALERT_COUNT_FAILED_DELIVERIES"
_DISPLAY_TZ_ENV = "DISPLAY_TIMEZONE"
_API_URL_ENV = "SENSOR_API_URL"
_API_TOKEN_ENV = "SENSOR_API_TOKEN"
_DEVICE_ID_ENV = "SENSOR_DEVICE_ID"
_VALUE_CODE_ENV = "SENSOR_VALUE_CODE"
_VALUE_SCALE_ENV = "SENSOR_VALUE_SCALE"
_API_TIMEOUT_ENV = "SENSOR_API_TIMEOUT"
_SMTP_HOST_ENV = "SMTP_HOST"
_SMTP_PORT_ENV = "SMTP_PORT"
_SMTP_USERNAME_ENV = "SMTP_USERNAME"
_SMTP_PASSWORD_ENV = "SMTP_PASSWORD"
_SMTP_STARTTLS_ENV = "SMTP_STARTTLS"
_SMTP_SENDER_ENV = "SMTP_SENDER"
_SMTP_TIMEOUT_ENV = "SMTP_TIMEOUT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    sensor_id: str
    readings_path: Optional[str]
    alerts_path: Optional[str]
    thresholds_path: Optional[str]
    cooldown_hours: float
    alert_cap: int
    count_failed_deliveries: bool
    display_timezone: str
    sensor_api_url: str
    sensor_api_token: Optional[str]
    sensor_device_id: Optional[str]
    sensor_value_code: str
    sensor_value_scale: int
    sensor_api_timeout: float
    smtp_host: str
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_starttls: bool
    smtp_sender: Optional[str]
    smtp_timeout: float
    log_level: str

    @property
    def cooldown_window(self) -> timedelta:
        return timedelta(hours=self.cooldown_hours)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_timezone_env(name: str, default: str) -> str:
    candidate = _read_str_env(name, default)
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return candidate


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        sensor_id=_read_str_env(_SENSOR_ID_ENV, "sensor1"),
        readings_path=_read_optional_env(_READINGS_PATH_ENV, "./tmp/readings.jsonl"),
        alerts_path=_read_optional_env(_ALERTS_PATH_ENV, "./tmp/alerts.jsonl"),
        thresholds_path=_read_optional_env(_THRESHOLDS_PATH_ENV, "./tmp/thresholds.json"),
        cooldown_hours=_read_positive_float(_COOLDOWN_HOURS_ENV, 12.0),
        alert_cap=_read_positive_int(_ALERT_CAP_ENV, 1),
        count_failed_deliveries=_read_bool(_COUNT_FAILED_ENV, True),
        display_timezone=_read_timezone_env(_DISPLAY_TZ_ENV, "Europe/Madrid"),
        sensor_api_url=_read_str_env(_API_URL_ENV, "http://localhost:9000").rstrip("/"),
        sensor_api_token=_read_optional_env(_API_TOKEN_ENV, None),
        sensor_device_id=_read_optional_env(_DEVICE_ID_ENV, None),
        sensor_value_code=_read_str_env(_VALUE_CODE_ENV, "temp_current_external"),
        sensor_value_scale=_read_positive_int(_VALUE_SCALE_ENV, 10),
        sensor_api_timeout=_read_positive_float(_API_TIMEOUT_ENV, 10.0),
        smtp_host=_read_str_env(_SMTP_HOST_ENV, "localhost"),
        smtp_port=_read_positive_int(_SMTP_PORT_ENV, 587),
        smtp_username=_read_optional_env(_SMTP_USERNAME_ENV, None),
        smtp_password=_read_optional_env(_SMTP_PASSWORD_ENV, None),
        smtp_starttls=_read_bool(_SMTP_STARTTLS_ENV, True),
        smtp_sender=_read_optional_env(_SMTP_SENDER_ENV, None),
        smtp_timeout=_read_positive_float(_SMTP_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
