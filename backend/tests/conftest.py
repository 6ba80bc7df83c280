"""Pytest configuration and fixtures for CropTrail tests.

Provides an in-memory SQLite database, fakeredis in place of the Redis
server, a scripted stand-in for the external APIs (routes, weather, air
quality, LLM gateway) and profiles for each role.
"""

import os

# Settings are read at import time, so configure the environment first.
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite://",
    "SECRET_KEY": "test-secret-key",
    "GOOGLE_API_KEY": "test-routes-key",
    "WEATHER_API_KEY": "test-weather-key",
    "LLM_API_KEY": "test-llm-key",
    "RATE_LIMIT_ENABLED": "false",
    "LOG_LEVEL": "WARNING",
})

import json
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable

import fakeredis
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from croptrail.auth.jwt import create_access_token
from croptrail.auth.password import hash_password
from croptrail.clients.http import get_http_client
from croptrail.database import Base, get_db
from croptrail.main import app
from croptrail.models import (
    Batch,
    BatchStatus,
    Profile,
    TransportLog,
    UserRole,
    VendorReceipt,
)
from croptrail.utils import redis_client as redis_module

TEST_PASSWORD = "harvest-season-2026"


# ── Scripted upstream APIs ───────────────────────────────────────

WEATHER_PAYLOAD = {
    "temperature": {"degrees": 31.5, "unit": "CELSIUS"},
    "relativeHumidity": 72,
    "weatherCondition": {"description": {"text": "Partly cloudy"}, "type": "PARTLY_CLOUDY"},
    "uvIndex": 7,
    "precipitation": {"qpf": {"quantity": 0.4, "unit": "MILLIMETERS"}},
    "wind": {"speed": {"value": 14, "unit": "KILOMETERS_PER_HOUR"}},
}

AIR_QUALITY_PAYLOAD = {"indexes": [{"code": "uaqi", "displayName": "Universal AQI", "aqi": 64}]}

ROUTE_PAYLOAD = {
    "routes": [
        {"distanceMeters": 152340, "duration": "7384s", "polyline": {"encodedPolyline": "_p~iF~ps|U"}}
    ]
}

ANALYSIS_FIELDS = {
    "degradation_point": "Quality dropped during the afternoon transport leg.",
    "environmental_impact": "High heat and humidity accelerated ripening.",
    "confidence_level": "Medium - temperature inside the vehicle was not logged",
    "farmer_suggestions": "Harvest in the early morning and shade the crates.",
    "transporter_suggestions": "Use a covered vehicle and avoid midday travel.",
    "vendor_suggestions": "Move the produce to cold storage on arrival.",
    "summary": "Heat exposure in transit caused moderate spoilage.",
}


def llm_tool_call_response(arguments: dict | str = None) -> dict:
    if arguments is None:
        arguments = ANALYSIS_FIELDS
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "choices": [{
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "analyze_crop_quality", "arguments": arguments},
                }],
            }
        }]
    }


class FakeUpstream:
    """Routes outbound requests by host to replaceable handlers.

    Tests swap a handler to script failures, e.g.
    ``upstream.weather = lambda request: httpx.Response(503)``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: Callable = lambda request: httpx.Response(200, json=ROUTE_PAYLOAD)
        self.weather: Callable = lambda request: httpx.Response(200, json=WEATHER_PAYLOAD)
        self.air_quality: Callable = lambda request: httpx.Response(200, json=AIR_QUALITY_PAYLOAD)
        self.llm: Callable = lambda request: httpx.Response(200, json=llm_tool_call_response())

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = {
            "routes.googleapis.com": self.routes,
            "weather.googleapis.com": self.weather,
            "airquality.googleapis.com": self.air_quality,
            "ai.gateway.lovable.dev": self.llm,
        }.get(request.url.host)
        if handler is None:
            return httpx.Response(404)
        return handler(request)

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


# ── Database ─────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


# ── Redis ────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def fake_redis(monkeypatch):
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr(redis_module, "_redis_client", client)
    yield client
    await client.flushall()
    await client.aclose()


# ── App client ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    fake_redis,
    upstream: FakeUpstream,
) -> AsyncGenerator[AsyncClient, None]:
    """ASGI client with the database, Redis and upstream APIs replaced."""
    outbound = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle))

    async def override_get_db():
        yield db_session

    async def override_get_http_client():
        return outbound

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = override_get_http_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await outbound.aclose()


# ── Profiles ─────────────────────────────────────────────────────

@pytest.fixture
def make_profile(db_session: AsyncSession):
    async def _make(role: UserRole, email: str, full_name: str | None = None) -> Profile:
        profile = Profile(
            email=email,
            hashed_password=hash_password(TEST_PASSWORD),
            full_name=full_name,
            role=role,
            is_active=True,
        )
        db_session.add(profile)
        await db_session.flush()
        return profile

    return _make


@pytest_asyncio.fixture
async def farmer(make_profile) -> Profile:
    return await make_profile(UserRole.FARMER, "farmer@example.com", "Asha Farmer")


@pytest_asyncio.fixture
async def other_farmer(make_profile) -> Profile:
    return await make_profile(UserRole.FARMER, "farmer2@example.com")


@pytest_asyncio.fixture
async def transporter(make_profile) -> Profile:
    return await make_profile(UserRole.TRANSPORTER, "driver@example.com", "Ravi Driver")


@pytest_asyncio.fixture
async def other_transporter(make_profile) -> Profile:
    return await make_profile(UserRole.TRANSPORTER, "driver2@example.com")


@pytest_asyncio.fixture
async def vendor(make_profile) -> Profile:
    return await make_profile(UserRole.VENDOR, "market@example.com", "City Market")


@pytest_asyncio.fixture
async def other_vendor(make_profile) -> Profile:
    return await make_profile(UserRole.VENDOR, "market2@example.com")


@pytest.fixture
def auth_headers() -> Callable[[Profile], dict]:
    """Build a bearer header for any profile."""
    def _headers(profile: Profile) -> dict:
        token = create_access_token(user_id=profile.id, role=profile.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ── Batches ──────────────────────────────────────────────────────

@pytest.fixture
def make_batch(db_session: AsyncSession):
    """Insert a batch directly at any status, with optional participants."""
    async def _make(
        farmer: Profile,
        status: BatchStatus = BatchStatus.CREATED,
        transporter: Profile | None = None,
        vendor: Profile | None = None,
        **fields,
    ) -> Batch:
        batch = Batch(
            farmer_id=farmer.id,
            crop_type=fields.pop("crop_type", "Tomato"),
            harvest_time=fields.pop("harvest_time", datetime(2026, 10, 1, 6, 0, tzinfo=timezone.utc)),
            expected_quality=fields.pop("expected_quality", "Grade A"),
            quantity_kg=fields.pop("quantity_kg", 500.0),
            status=status,
            **fields,
        )
        db_session.add(batch)
        await db_session.flush()
        if transporter is not None:
            db_session.add(TransportLog(batch_id=batch.id, transporter_id=transporter.id))
        if vendor is not None:
            db_session.add(VendorReceipt(batch_id=batch.id, vendor_id=vendor.id))
        await db_session.flush()
        return batch

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: pure-function tests, no app or database")
    config.addinivalue_line("markers", "api: tests that drive the app over HTTP")
    config.addinivalue_line("markers", "auth: authentication and session tests")
