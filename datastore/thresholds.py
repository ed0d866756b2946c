from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from app.schemas import ThresholdConfig
from services.errors import StoreReadError
from settings import get_settings


class ThresholdRegistry:
    """Read-only lookup of per-sensor ranges.

    The backing file is a JSON object keyed by sensor id::

        {"sensor1": {"min": 2, "max": 8, "notify_target": "ops@example.com"}}
    """

    def __init__(
        self,
        persistence_path: Optional[Path] = None,
        entries: Optional[Dict[str, ThresholdConfig]] = None,
    ) -> None:
        self.persistence_path = persistence_path
        self._entries: Dict[str, ThresholdConfig] = dict(entries or {})

    def get(self, sensor_id: str) -> Optional[ThresholdConfig]:
        if self.persistence_path:
            return self._load_from_disk(self.persistence_path).get(sensor_id)
        return self._entries.get(sensor_id)

    def _load_from_disk(self, path: Path) -> Dict[str, ThresholdConfig]:
        if not path.exists():
            return {}

        try:
            data: Any = json.loads(path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreReadError(
                f"Could not read thresholds from {path}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise StoreReadError("Threshold file must contain a JSON object.")

        entries: Dict[str, ThresholdConfig] = {}
        for sensor_id, payload in data.items():
            try:
                entries[sensor_id] = ThresholdConfig.model_validate(
                    {**payload, "sensor_id": sensor_id}
                )
            except (TypeError, ValidationError) as exc:
                raise StoreReadError(
                    f"Invalid threshold entry for sensor {sensor_id!r}."
                ) from exc
        return entries


@lru_cache
def build_default_registry(path: Optional[str] = None) -> ThresholdRegistry:
    settings = get_settings()
    registry_path = settings.thresholds_path if path is None else path
    persistence = Path(registry_path) if registry_path else None
    return ThresholdRegistry(persistence_path=persistence)
