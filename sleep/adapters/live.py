"""Live sample source: queries the health-data service over HTTP.

Uses fetch_with_retry for transient-only retry (429/5xx/timeout).
Every failure that survives the retry policy is raised as SampleSourceError;
a payload the mapper cannot read is raised as SampleShapeError.
"""

from datetime import datetime

import httpx
import structlog

from shared.metrics import sample_source_duration_seconds
from sleep.adapters.http_client import TransientHTTPError, fetch_with_retry
from sleep.adapters.mapper import SampleMapper
from sleep.domain.errors import SampleShapeError, SampleSourceError
from sleep.domain.models import SleepCategory, SleepSample

logger = structlog.get_logger()

SLEEP_ANALYSIS_PATH = "/v1/samples/sleep-analysis"


class LiveSampleSource:
    """Live-mode source: fetches from the health-data API, then delegates to mapper."""

    source_name = "live"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 10.0,
        max_attempts: int = 3,
        max_wait: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._max_wait = max_wait
        self._transport = transport
        self._mapper = SampleMapper()

    async def query(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        category: SleepCategory | None = None,
        limit: int | None = None,
        ascending: bool = True,
    ) -> list[SleepSample]:
        url = f"{self.base_url}{SLEEP_ANALYSIS_PATH}"
        headers = {"Authorization": f"Bearer {self._access_token}"}
        params = self._mapper.query_params(start, end, category, limit, ascending)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                with sample_source_duration_seconds.labels(source=self.source_name).time():
                    resp = await fetch_with_retry(
                        client,
                        "GET",
                        url,
                        max_attempts=self._max_attempts,
                        max_wait=self._max_wait,
                        headers=headers,
                        params=params,
                    )
            return self._mapper.parse(resp.json())
        except (httpx.HTTPError, TransientHTTPError) as exc:
            logger.warning("sample_source_request_failed", url=url, error=str(exc))
            raise SampleSourceError(f"sample source request failed: {exc}") from exc
        except ValueError as exc:
            logger.warning("sample_source_payload_invalid", url=url, error=str(exc))
            raise SampleShapeError(f"sample source returned an invalid payload: {exc}") from exc
