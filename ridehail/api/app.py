"""
FastAPI application factory.

* Registers the users, drivers, vehicles, rides, tracking and payments
  routers.
* Builds the long-lived outbound clients (event relay, JWKS, payment
  gateway) on one shared ``httpx.AsyncClient`` via lifespan events.
* Translates domain errors into ``{"detail", "error"}`` responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

from ridehail.api.middleware import limiter
from ridehail.api.routes import drivers, health, payments, rides, tracking, users, vehicles
from ridehail.config import settings
from ridehail.domain.exceptions import RideHailError
from ridehail.infrastructure.database import engine
from ridehail.infrastructure.event_sink import EventSink
from ridehail.infrastructure.identity import IdentityVerifier
from ridehail.infrastructure.payment_gateway import RazorpayClient
from ridehail.infrastructure.redis_client import close_redis

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared outbound HTTP client on startup; close on shutdown."""
    client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    app.state.events = EventSink(
        client,
        settings.relay_base_url,
        max_attempts=settings.event_max_attempts,
        backoff_seconds=settings.event_backoff_seconds,
    )
    app.state.verifier = IdentityVerifier(
        client,
        settings.jwks_url,
        min_refresh_interval=settings.jwks_min_refresh_seconds,
    )
    app.state.gateway = RazorpayClient(
        client,
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        base_url=settings.razorpay_base_url,
        webhook_secret=settings.razorpay_webhook_secret,
    )
    logger.info("Event relay at %s", settings.relay_base_url)
    yield
    await client.aclose()
    await close_redis()
    await engine.dispose()


async def domain_error_handler(request: Request, exc: RideHailError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Constraint violation on %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "Conflicts with an existing record", "error": "conflict"},
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={
            "detail": f"Invalid request: {', '.join(fields)}",
            "error": "invalid-input",
        },
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride-Hailing API",
        description=(
            "Riders request trips, nearby online drivers are notified and "
            "the first to accept wins.  Trips are tracked, priced from the "
            "driven route and settled through the payment gateway."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Error translation
    app.add_exception_handler(RideHailError, domain_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Routers
    for module in (users, drivers, vehicles, rides, tracking, payments, health):
        app.include_router(module.router)

    return app
