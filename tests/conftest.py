"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  Every session gets its own connection,
which lets the concurrency tests race real transactions.  Outbound HTTP
(event relay, JWKS, payment gateway) goes through ``httpx.MockTransport``.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ridehail.infrastructure.database import Base
from ridehail.infrastructure.payment_gateway import RazorpayClient
from tests.factories import (
    KEY_ID,
    KEY_SECRET,
    WEBHOOK_SECRET,
    FakeGatewayBackend,
    IdentityProvider,
    RecordingEventSink,
)


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ridehail.db'}", echo=False
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Outbound collaborators ────────────────────────────────────────────


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def gateway_backend() -> FakeGatewayBackend:
    return FakeGatewayBackend()


@pytest_asyncio.fixture
async def gateway(gateway_backend) -> AsyncGenerator[RazorpayClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(gateway_backend)
    ) as http:
        yield RazorpayClient(
            http,
            KEY_ID,
            KEY_SECRET,
            base_url="https://gateway.test/v1",
            webhook_secret=WEBHOOK_SECRET,
        )


@pytest.fixture
def fake_redis():
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def identity_provider() -> IdentityProvider:
    return IdentityProvider()


@pytest_asyncio.fixture
async def verifier(identity_provider):
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(identity_provider.jwks_handler)
    ) as http:
        yield identity_provider.verifier(http)


# ── HTTP client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, events, gateway, verifier, fake_redis):
    """AsyncClient against the real app with collaborators overridden."""
    from ridehail.api.app import create_app
    from ridehail.api.dependencies import (
        get_db,
        get_event_sink,
        get_gateway,
        get_redis,
        get_verifier,
    )

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_event_sink] = lambda: events
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_verifier] = lambda: verifier
    app.dependency_overrides[get_redis] = lambda: fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
