"""API endpoint tests using FastAPI TestClient.

These tests override the SleepStore dependency with a mock, testing the
API layer in isolation from the cache database and the sample source.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from main import app
from shared.config import settings
from sleep.api import get_sleep_store
from sleep.domain.errors import (
    HealthStoreError,
    NoSleepDataAvailableError,
    QueryError,
    UnknownReturnConfigurationError,
)
from sleep.domain.models import HourAndMinute
from sleep.store import ChangeResult
from tests.conftest import make_entry


@pytest.fixture
def client():
    """FastAPI test client with a mocked SleepStore."""
    mock_store = AsyncMock()

    app.dependency_overrides[get_sleep_store] = lambda: mock_store
    with TestClient(app) as c:
        yield c, mock_store
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    def test_health(self):
        with TestClient(app) as c:
            resp = c.get("/health")
            assert resp.status_code == 200
            assert resp.json() == {"status": "ok"}


class TestSamplesEndpoint:
    def test_returns_entries(self, client):
        c, store = client
        entry = make_entry(datetime(2024, 3, 14, 23, 0, tzinfo=UTC), sync_identifier="w-1")
        store.get_samples.return_value = [entry]

        resp = c.get("/api/v1/sleep/samples", params={"start": "2024-03-14T00:00:00Z"})

        assert resp.status_code == 200
        [item] = resp.json()["data"]
        assert item["id"] == str(entry.id)
        assert item["sync_identifier"] == "w-1"
        assert item["start_date"] == "2024-03-14T23:00:00+00:00"
        assert "request_id" in resp.json()["meta"]

    def test_passes_range_to_store(self, client):
        c, store = client
        store.get_samples.return_value = []
        c.get(
            "/api/v1/sleep/samples",
            params={"start": "2024-03-14T00:00:00Z", "end": "2024-03-15T00:00:00Z"},
        )
        store.get_samples.assert_awaited_once_with(
            datetime(2024, 3, 14, tzinfo=UTC), datetime(2024, 3, 15, tzinfo=UTC)
        )

    def test_naive_dates_treated_as_utc(self, client):
        c, store = client
        store.get_samples.return_value = []
        c.get("/api/v1/sleep/samples", params={"start": "2024-03-14T00:00:00"})
        store.get_samples.assert_awaited_once_with(datetime(2024, 3, 14, tzinfo=UTC), None)

    def test_invalid_date_range_returns_400(self, client):
        c, _ = client
        resp = c.get(
            "/api/v1/sleep/samples",
            params={"start": "2024-03-15T00:00:00Z", "end": "2024-03-01T00:00:00Z"},
        )
        assert resp.status_code == 400
        assert resp.json()["title"] == "Invalid Date Range"
        assert resp.headers["content-type"] == "application/problem+json"

    def test_missing_start_returns_422(self, client):
        c, _ = client
        resp = c.get("/api/v1/sleep/samples")
        assert resp.status_code == 422
        body = resp.json()
        assert body["title"] == "Validation Error"
        assert body["violations"][0]["field"] == "start"


class TestAverageStartTimeEndpoint:
    def test_success(self, client):
        c, store = client
        store.get_average_sleep_start_time.return_value = HourAndMinute(23, 15)
        resp = c.get("/api/v1/sleep/average-start-time", params={"sample_limit": 10})
        assert resp.status_code == 200
        assert resp.json()["data"] == {"hour": 23, "minute": 15, "sample_limit": 10}
        store.get_average_sleep_start_time.assert_awaited_once_with(10)

    def test_default_limit_from_settings(self, client, monkeypatch):
        c, store = client
        monkeypatch.setattr(settings, "average_sample_limit", 5)
        store.get_average_sleep_start_time.return_value = HourAndMinute(22, 40)

        resp = c.get("/api/v1/sleep/average-start-time")

        assert resp.status_code == 200
        assert resp.json()["data"]["sample_limit"] == 5
        store.get_average_sleep_start_time.assert_awaited_once_with(5)

    def test_no_data_returns_404(self, client):
        c, store = client
        store.get_average_sleep_start_time.side_effect = NoSleepDataAvailableError()
        resp = c.get("/api/v1/sleep/average-start-time")
        assert resp.status_code == 404
        assert resp.json()["title"] == "No Sleep Data Available"
        assert resp.headers["content-type"] == "application/problem+json"

    @pytest.mark.parametrize(
        "error", [QueryError("denied"), HealthStoreError(ConnectionError("down"))]
    )
    def test_source_errors_return_502(self, client, error):
        c, store = client
        store.get_average_sleep_start_time.side_effect = error
        resp = c.get("/api/v1/sleep/average-start-time")
        assert resp.status_code == 502
        assert resp.json()["title"] == "Sample Source Error"

    def test_unknown_shape_returns_500(self, client):
        c, store = client
        store.get_average_sleep_start_time.side_effect = UnknownReturnConfigurationError()
        resp = c.get("/api/v1/sleep/average-start-time")
        assert resp.status_code == 500
        assert resp.json()["title"] == "Statistic Unavailable"

    def test_invalid_sample_limit_returns_422(self, client):
        c, _ = client
        resp = c.get("/api/v1/sleep/average-start-time", params={"sample_limit": 0})
        assert resp.status_code == 422


class TestChangesEndpoint:
    def test_applies_changes(self, client):
        c, store = client
        store.apply_changes.return_value = ChangeResult(created=1, deleted=2)
        sample_id = uuid4()
        resp = c.post(
            "/api/v1/sleep/changes",
            json={
                "added": [
                    {
                        "uuid": str(sample_id),
                        "start_date": "2024-03-14T23:00:00Z",
                        "end_date": "2024-03-15T07:00:00Z",
                        "value": 0,
                    }
                ],
                "deleted": [{"uuid": str(uuid4())}, {"uuid": str(uuid4())}],
            },
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "created": 1,
            "skipped": 0,
            "updated": 0,
            "deleted": 2,
            "purged": 0,
        }
        [changes] = store.apply_changes.await_args.args
        assert changes.added[0].uuid == sample_id
        assert len(changes.deleted) == 2

    def test_malformed_sample_returns_422(self, client):
        c, _ = client
        resp = c.post("/api/v1/sleep/changes", json={"added": [{"uuid": "nope"}]})
        assert resp.status_code == 422
        assert resp.json()["title"] == "Validation Error"


class TestRFC9457ErrorFormat:
    def test_error_has_required_fields(self, client):
        c, _ = client
        resp = c.get("/api/v1/sleep/samples")
        body = resp.json()
        for key in ("type", "title", "status", "detail", "instance"):
            assert key in body
        assert body["instance"] == "/api/v1/sleep/samples"

    def test_request_id_in_response_header(self):
        with TestClient(app) as c:
            resp = c.get("/health", headers={"X-Request-ID": "req-42"})
            assert resp.headers["X-Request-ID"] == "req-42"
