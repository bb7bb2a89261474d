"""FastAPI router for the sleep cache.

Endpoints:
- GET  /api/v1/sleep/samples
- GET  /api/v1/sleep/average-start-time
- POST /api/v1/sleep/changes  (change feed from the source observer)
"""

import time
from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from shared.config import settings
from shared.exceptions import InvalidDateRangeError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var
from sleep.domain.models import SampleChanges, StoredSleepEntry
from sleep.store import SleepStore

router = APIRouter(prefix="/api/v1")


def get_sleep_store(request: Request) -> SleepStore:
    """Resolve the SleepStore from the process context attached at startup."""
    return request.app.state.context.store


# --- Response helpers ---


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _entry_to_dict(entry: StoredSleepEntry) -> dict[str, Any]:
    return {
        "id": str(entry.id),
        "sync_identifier": entry.sync_identifier,
        "sync_version": entry.sync_version,
        "start_date": entry.start_date.isoformat(),
        "end_date": entry.end_date.isoformat(),
        "value": entry.value,
    }


def _record(endpoint: str, method: str, status_code: int, start_time: float) -> None:
    api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


# --- Endpoints ---


@router.get("/sleep/samples")
async def get_samples(
    store: SleepStore = Depends(get_sleep_store),
    start: datetime = Query(...),
    end: datetime | None = Query(None),
):
    """Sleep samples with start_date in [start, end), oldest first.

    Served from the sample source, or from the local cache when the range
    sits inside the retention window or the source is unavailable.
    """
    start_time = time.monotonic()
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)
    if end is not None and end.tzinfo is None:
        end = end.replace(tzinfo=UTC)
    if end is not None and start >= end:
        raise InvalidDateRangeError(start.isoformat(), end.isoformat())

    entries = await store.get_samples(start, end)

    _record("samples", "GET", 200, start_time)
    return {"data": [_entry_to_dict(e) for e in entries], "meta": _meta()}


@router.get("/sleep/average-start-time")
async def get_average_start_time(
    store: SleepStore = Depends(get_sleep_store),
    sample_limit: int | None = Query(None, ge=1, le=1000),
):
    """Average bedtime (hour, minute) over the most recent samples.

    `sample_limit` defaults to the configured average_sample_limit.

    Errors are mapped by sleep_store_error_handler:
    - 404: no in-bed or asleep samples exist
    - 502: the sample source failed
    """
    start_time = time.monotonic()
    if sample_limit is None:
        sample_limit = settings.average_sample_limit
    average = await store.get_average_sleep_start_time(sample_limit)

    _record("average_start_time", "GET", 200, start_time)
    return {
        "data": {"hour": average.hour, "minute": average.minute, "sample_limit": sample_limit},
        "meta": _meta(),
    }


@router.post("/sleep/changes")
async def apply_changes(
    changes: SampleChanges,
    store: SleepStore = Depends(get_sleep_store),
):
    """Apply additions, updates and deletions observed at the sample source."""
    start_time = time.monotonic()
    result = await store.apply_changes(changes)

    _record("changes", "POST", 200, start_time)
    return {"data": asdict(result), "meta": _meta()}
