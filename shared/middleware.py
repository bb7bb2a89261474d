"""FastAPI middleware for request ID injection and error handling."""

from collections.abc import Callable
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from shared.exceptions import (
    PROBLEM_BASE_URI,
    ProblemDetailError,
    SampleSourceFailedError,
    SleepDataUnavailableError,
    StatisticUnavailableError,
)
from sleep.domain.errors import (
    HealthStoreError,
    NoSleepDataAvailableError,
    QueryError,
    SleepStoreError,
)

logger = structlog.get_logger()

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Inject a unique request ID into every request and response.

    Header name: X-Request-ID. Default format: UUID v4.
    The ID is bound into structlog contextvars for the request's duration.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Callable[..., Response]]
    ):
        rid = request.headers.get("X-Request-ID", str(uuid4()))
        request_id_var.set(rid)
        structlog.contextvars.bind_contextvars(request_id=rid)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")


def _problem_response(request: Request, body: dict, status: int) -> JSONResponse:
    body["instance"] = str(request.url.path)
    return JSONResponse(status_code=status, content=body, media_type="application/problem+json")


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    """Convert ProblemDetailError exceptions into RFC 9457 responses."""
    body: dict = {
        "type": exc.type_uri,
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
    }
    if exc.violations:
        body["violations"] = exc.violations
    return _problem_response(request, body, exc.status)


def problem_for_store_error(exc: SleepStoreError) -> ProblemDetailError:
    if isinstance(exc, NoSleepDataAvailableError):
        return SleepDataUnavailableError()
    if isinstance(exc, QueryError | HealthStoreError):
        return SampleSourceFailedError(str(exc))
    return StatisticUnavailableError(str(exc))


async def sleep_store_error_handler(request: Request, exc: SleepStoreError) -> JSONResponse:
    """Map sleep store errors that reach the API onto RFC 9457 responses."""
    logger.warning("sleep_store_error", path=str(request.url.path), error=str(exc))
    return await problem_detail_handler(request, problem_for_store_error(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert FastAPI/Pydantic native validation errors into RFC 9457 format.

    All 422 errors use application/problem+json with a violations array,
    not FastAPI's default {detail: [...]}.
    """
    violations = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc if part not in ("body", "query"))
        violations.append(
            {
                "field": field or "(root)",
                "message": err.get("msg", "Validation error"),
                "constraint": err.get("type", "validation"),
            }
        )

    body = {
        "type": f"{PROBLEM_BASE_URI}/validation-error",
        "title": "Validation Error",
        "status": 422,
        "detail": f"Request contains {len(violations)} validation error(s)",
        "violations": violations,
    }
    return _problem_response(request, body, 422)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert generic HTTP exceptions into RFC 9457 format."""
    body = {
        "type": "about:blank",
        "title": exc.detail if isinstance(exc.detail, str) else "Error",
        "status": exc.status_code,
        "detail": exc.detail if isinstance(exc.detail, str) else str(exc.detail),
    }
    return _problem_response(request, body, exc.status_code)
