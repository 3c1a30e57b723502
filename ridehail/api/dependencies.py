"""FastAPI dependency injection helpers."""

from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.config import settings
from ridehail.domain.exceptions import UnauthenticatedError
from ridehail.domain.pricing import FareCalculator
from ridehail.infrastructure.database import async_session_factory
from ridehail.infrastructure.event_sink import EventSink
from ridehail.infrastructure.identity import IdentityVerifier
from ridehail.infrastructure.payment_gateway import RazorpayClient
from ridehail.infrastructure.redis_client import get_redis as _get_redis
from ridehail.services.dispatcher import Dispatcher
from ridehail.services.drivers import DriverRegistry
from ridehail.services.payments import PaymentService
from ridehail.services.rides import RideService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis() -> aioredis.Redis:
    return await _get_redis()


# Long-lived clients are built once in the app lifespan.

def get_event_sink(request: Request) -> EventSink:
    return request.app.state.events


def get_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.verifier


def get_gateway(request: Request) -> RazorpayClient:
    return request.app.state.gateway


def get_fare_calculator() -> FareCalculator:
    return FareCalculator(
        base_fare=settings.base_fare, rate_per_km=settings.rate_per_km
    )


def get_ride_service(
    db: AsyncSession = Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    fares: FareCalculator = Depends(get_fare_calculator),
) -> RideService:
    dispatcher = Dispatcher(DriverRegistry(db), events)
    return RideService(db, events, fares, dispatcher=dispatcher)


def get_payment_service(
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayClient = Depends(get_gateway),
    redis: aioredis.Redis = Depends(get_redis),
) -> PaymentService:
    return PaymentService(db, gateway, redis)


async def get_current_subject(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_verifier),
) -> str:
    """External identity of the caller from the ``Authorization`` header."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Missing bearer token")
    claims = await verifier.verify(credentials.credentials)
    subject = claims.get("sub")
    if not subject:
        raise UnauthenticatedError("Token has no subject")
    return subject
