"""FastAPI application entry point.

Wires together: middleware, exception handlers, routes, metrics.
Builds the sleep cache context at startup and closes it at shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import settings
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestIdMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
    sleep_store_error_handler,
)
from sleep.api import router as sleep_router
from sleep.context import SleepKitContext
from sleep.domain.errors import SleepStoreError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(json_output=True)
    context = SleepKitContext.from_settings(settings)
    await context.start()
    app.state.context = context
    logger.info(
        "app_starting",
        source_mode=settings.source_mode,
        cache_length_hours=settings.cache_length_hours,
        database_url=settings.database_url.split("@")[-1],  # hide credentials
    )
    yield
    logger.info("app_shutting_down")
    await context.close()


app = FastAPI(
    title="Sleep Cache API",
    description=(
        "Serves sleep analysis samples from an external health-data source, "
        "backed by a local cache, and derives the average bedtime."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

# All errors emit application/problem+json (RFC 9457)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(SleepStoreError, sleep_store_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(sleep_router)

metrics_app = create_metrics_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    return {"status": "ok"}
