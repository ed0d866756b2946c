"""Reading source backed by the sensor vendor's device-status HTTP API."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from models.records import SourceReading
from services.errors import MalformedResponse, MissingField, SourceUnavailable
from settings import Settings


class HttpReadingSource:
    """Fetches ``/v1.0/devices/{device_id}/status`` and extracts one status code.

    The vendor reports temperatures as scaled integers, for example ``93``
    for 9.3 °C with the default scale of 10.
    """

    def __init__(
        self,
        base_url: str,
        value_code: str = "temp_current_external",
        value_scale: int = 10,
        device_id: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.value_code = value_code
        self.value_scale = value_scale
        self.device_id = device_id
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = httpx.Client(
            base_url=base_url, timeout=timeout, headers=headers, transport=transport
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpReadingSource":
        return cls(
            base_url=settings.sensor_api_url,
            value_code=settings.sensor_value_code,
            value_scale=settings.sensor_value_scale,
            device_id=settings.sensor_device_id,
            token=settings.sensor_api_token,
            timeout=settings.sensor_api_timeout,
        )

    def close(self) -> None:
        self._client.close()

    def fetch(self, sensor_id: str) -> SourceReading:
        device_id = self.device_id or sensor_id
        try:
            response = self._client.get(f"/v1.0/devices/{device_id}/status")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MalformedResponse(
                f"Sensor API returned status {exc.response.status_code} for device {device_id!r}."
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"Sensor API unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponse("Sensor API returned a non-JSON body.") from exc
        if not isinstance(payload, dict):
            raise MalformedResponse("Sensor API returned an unexpected payload.")

        raw_value = self._find_status_value(payload)
        try:
            temperature = Decimal(str(raw_value)) / Decimal(self.value_scale)
        except (InvalidOperation, ValueError) as exc:
            raise MalformedResponse(
                f"Status {self.value_code!r} is not numeric: {raw_value!r}"
            ) from exc
        if not temperature.is_finite():
            raise MalformedResponse(f"Status {self.value_code!r} is not finite: {raw_value!r}")

        return SourceReading(timestamp=self._parse_timestamp(payload), temperature=temperature)

    def _find_status_value(self, payload: Dict[str, Any]) -> Any:
        statuses = payload.get("result")
        if not isinstance(statuses, list):
            raise MalformedResponse("Sensor API payload has no status list.")
        for status in statuses:
            if isinstance(status, dict) and status.get("code") == self.value_code:
                value = status.get("value")
                if value is None or isinstance(value, bool):
                    break
                return value
        raise MissingField(f"Status {self.value_code!r} missing from sensor API payload.")

    @staticmethod
    def _parse_timestamp(payload: Dict[str, Any]) -> datetime:
        millis = payload.get("t")
        if isinstance(millis, (int, float)) and not isinstance(millis, bool):
            try:
                return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
            except (ValueError, OverflowError, OSError) as exc:
                raise MalformedResponse(f"Sensor API timestamp is out of range: {millis!r}") from exc
        return datetime.now(timezone.utc)
