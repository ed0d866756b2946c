from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas import Alert, Reading
from services.errors import StoreReadError, StoreWriteError
from settings import get_settings

RowT = TypeVar("RowT", bound=BaseModel)


class AppendOnlyTable(Generic[RowT]):
    """Rows are only ever appended; each append writes one JSON line."""

    row_type: Type[RowT]

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._rows: List[RowT] = []
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, row: RowT) -> None:
        with self._lock:
            if self.persistence_path:
                line = row.model_dump_json()
                try:
                    with self.persistence_path.open("a", encoding="utf-8") as handle:
                        handle.write(line + "\n")
                except OSError as exc:
                    raise StoreWriteError(
                        f"Could not append to table {self.name!r}: {exc}"
                    ) from exc
                return
            self._rows.append(row)

    def scan(self) -> List[RowT]:
        with self._lock:
            if self.persistence_path:
                return self._load_from_disk(self.persistence_path)
            return list(self._rows)

    def _load_from_disk(self, path: Path) -> List[RowT]:
        if not path.exists():
            return []

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreReadError(f"Could not read table {self.name!r}: {exc}") from exc

        rows: List[RowT] = []
        for line_number, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                rows.append(self.row_type.model_validate_json(line))
            except ValidationError as exc:
                raise StoreReadError(
                    f"Corrupt row {line_number} in table {self.name!r}."
                ) from exc
        return rows


class ReadingStore(AppendOnlyTable[Reading]):
    row_type = Reading

    def latest(self, sensor_id: str, limit: int = 20) -> List[Reading]:
        """Return up to ``limit`` readings for the sensor, newest first."""
        readings = [row for row in self.scan() if row.sensor_id == sensor_id]
        readings.sort(key=lambda reading: reading.timestamp, reverse=True)
        return readings[:limit]


class AlertLedger(AppendOnlyTable[Alert]):
    row_type = Alert

    def recent(self, sensor_id: str, since: datetime) -> List[Alert]:
        """Return alerts for the sensor stamped at or after ``since``, newest first."""
        alerts = [
            row for row in self.scan() if row.sensor_id == sensor_id and row.timestamp >= since
        ]
        alerts.sort(key=lambda alert: alert.timestamp, reverse=True)
        return alerts


@lru_cache
def build_default_reading_store(path: Optional[str] = None) -> ReadingStore:
    settings = get_settings()
    table_path = settings.readings_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ReadingStore(name="readings", persistence_path=persistence)


@lru_cache
def build_default_alert_ledger(path: Optional[str] = None) -> AlertLedger:
    settings = get_settings()
    table_path = settings.alerts_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return AlertLedger(name="alerts", persistence_path=persistence)
