"""gymbro journey FastAPI application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gymbro.api import health, journey, points
from gymbro.core.cache import JourneyCache
from gymbro.core.config import settings
from gymbro.core.errors import JourneyError, RateLimited
from gymbro.core.rate_limit import SlidingWindowLimiter

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app.state.journey_cache = JourneyCache(settings.journey_cache_ttl_seconds)
app.state.completion_limiter = SlidingWindowLimiter(
    settings.completion_rate_limit,
    settings.completion_rate_window_seconds,
)


@app.exception_handler(JourneyError)
async def journey_error_handler(request: Request, exc: JourneyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("journey_error code=%s path=%s", exc.code, request.url.path)
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


app.include_router(health.router)
app.include_router(journey.router)
app.include_router(points.router)
