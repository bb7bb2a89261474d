"""HTTP client with tenacity retry for sample source calls.

Retry policy:
- Retry on transient errors (429, 500, 502, 503, 504, timeouts, dropped connections)
- Do NOT retry on other 4xx (bad query, auth failures)
- Exponential backoff with jitter, capped at `max_wait` seconds
- At most `max_attempts` attempts, then the last error is re-raised
"""

import logging

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}
RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.TransportError)


class TransientHTTPError(Exception):
    """Raised for HTTP errors that are safe to retry."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_attempts: int = 3,
    max_wait: float = 30,
    **kwargs,
) -> httpx.Response:
    """Make an HTTP request, retrying transient failures."""
    retrying = AsyncRetrying(
        retry=retry_if_exception_type((TransientHTTPError, *RETRYABLE_ERRORS)),
        wait=wait_exponential_jitter(initial=1, max=max_wait, jitter=2),
        stop=stop_after_attempt(max_attempts),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            response = await client.request(method, url, **kwargs)
            if response.status_code in TRANSIENT_STATUS_CODES:
                raise TransientHTTPError(response.status_code, response.text[:200])
            response.raise_for_status()
    return response
