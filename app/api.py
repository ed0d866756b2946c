"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import Alert, Reading, RunResult, RunStatus
from datastore.tables import (
    AlertLedger,
    ReadingStore,
    build_default_alert_ledger,
    build_default_reading_store,
)
from services.errors import StoreError
from services.pipeline import AlertPipeline, open_pipeline
from settings import Settings, get_settings

router = APIRouter()

_RUN_STATUS_CODES = {
    RunStatus.failed: status.HTTP_502_BAD_GATEWAY,
    RunStatus.invalid_config: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_pipeline() -> Iterator[AlertPipeline]:
    with open_pipeline() as pipeline:
        yield pipeline


def get_reading_store() -> ReadingStore:
    return build_default_reading_store()


def get_alert_ledger() -> AlertLedger:
    return build_default_alert_ledger()


def get_app_settings() -> Settings:
    return get_settings()


@router.post(
    "/sensors/{sensor_id}/runs",
    response_model=RunResult,
    summary="Run the alerting pipeline once for a sensor.",
)
def trigger_run(
    sensor_id: str,
    response: Response,
    pipeline: AlertPipeline = Depends(get_pipeline),
) -> RunResult:
    result = pipeline.run(sensor_id)
    response.status_code = _RUN_STATUS_CODES.get(result.status, status.HTTP_200_OK)
    return result


@router.get(
    "/sensors/{sensor_id}/readings",
    response_model=List[Reading],
    summary="List the most recent stored readings, newest first.",
)
def list_readings(
    sensor_id: str,
    limit: int = Query(20, ge=1, le=1000),
    store: ReadingStore = Depends(get_reading_store),
) -> List[Reading]:
    try:
        return store.latest(sensor_id, limit=limit)
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/sensors/{sensor_id}/alerts",
    response_model=List[Alert],
    summary="List recorded alerts within a trailing window, newest first.",
)
def list_alerts(
    sensor_id: str,
    hours: Optional[float] = Query(None, gt=0, description="Defaults to the cooldown window."),
    ledger: AlertLedger = Depends(get_alert_ledger),
    settings: Settings = Depends(get_app_settings),
) -> List[Alert]:
    window = timedelta(hours=hours) if hours is not None else settings.cooldown_window
    since = datetime.now(timezone.utc) - window
    try:
        return ledger.recent(sensor_id, since)
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
