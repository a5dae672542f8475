"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files; pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from resort_bookings.deps import (
    can_manage_bookings,
    can_manage_holidays,
    can_read_bookings,
    get_availability_projector,
    get_booking_engine,
    get_current_user,
    get_holiday_registry,
)
from resort_bookings.main import TORTOISE_MODULES
from resort_bookings.routers import availability, booking, holidays

from .factories import TODAY, make_admin, make_staff

# ---------------------------------------------------------------------------
# Clock and cache: every test runs on a fixed "today" and without Redis
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def frozen_today(monkeypatch):
    monkeypatch.setattr("resort_bookings.datekeys.today", lambda: TODAY)
    return TODAY


@pytest.fixture(autouse=True)
def no_redis():
    """Cache always misses; writes are recorded but go nowhere."""
    cache = MagicMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.invalidate = AsyncMock()
    with (
        patch("resort_bookings.availability.get_availability_cache", cache.get),
        patch("resort_bookings.availability.set_availability_cache", cache.set),
        patch(
            "resort_bookings.availability.invalidate_availability_cache",
            cache.invalidate,
        ),
    ):
        yield cache


@pytest.fixture()
def memory_cache(no_redis):
    """
    Dict-backed stand-in for the Redis cache, keeping the highest-version
    publish per date the way the Redis script does.
    """
    store: dict[str, dict] = {}

    async def _get(date_key):
        return store.get(date_key)

    async def _set(date_key, availability, version):
        current = store.get(date_key)
        if current is None or current["version"] < version:
            store[date_key] = {**availability, "version": version}

    async def _invalidate(date_key):
        store.pop(date_key, None)

    no_redis.get.side_effect = _get
    no_redis.set.side_effect = _set
    no_redis.invalidate.side_effect = _invalidate
    return store


# ---------------------------------------------------------------------------
# Database: in-memory SQLite, fresh schema per test
# ---------------------------------------------------------------------------


@pytest.fixture()
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules=TORTOISE_MODULES)
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


# ---------------------------------------------------------------------------
# Default core mocks: routes never reach the database in API tests
# ---------------------------------------------------------------------------


def _noop_engine():
    mock = MagicMock()
    mock.create_public_booking = AsyncMock()
    mock.create_admin_booking = AsyncMock()
    mock.change_status = AsyncMock()
    mock.get_booking = AsyncMock()
    mock.get_audit_log = AsyncMock(return_value=[])
    mock.list_bookings = AsyncMock(return_value=[])
    return mock


def _noop_projector():
    mock = MagicMock()
    mock.get_availability = AsyncMock()
    return mock


def _noop_registry():
    mock = MagicMock()
    mock.list_holidays = AsyncMock(return_value=[])
    mock.mark_holiday = AsyncMock()
    mock.remove_holiday = AsyncMock(return_value=True)
    return mock


# ---------------------------------------------------------------------------
# App builder, used by all client fixtures
# ---------------------------------------------------------------------------


def _bare_app() -> FastAPI:
    app = FastAPI()
    app.include_router(availability.router)
    app.include_router(booking.router)
    app.include_router(holidays.router)
    return app


def build_app(current_user, engine=None, projector=None, registry=None) -> FastAPI:
    """
    Fresh FastAPI app with auth/scope dependencies overridden to return
    `current_user` unconditionally.

    Pass `engine` / `projector` / `registry` to inject custom mocks.
    Defaults to no-op mocks, so no database is needed.
    """
    app = _bare_app()

    async def _user():
        return current_user

    for dep in (
        can_read_bookings,
        can_manage_bookings,
        can_manage_holidays,
        get_current_user,
    ):
        app.dependency_overrides[dep] = _user

    en = engine if engine is not None else _noop_engine()
    pr = projector if projector is not None else _noop_projector()
    rg = registry if registry is not None else _noop_registry()
    app.dependency_overrides[get_booking_engine] = lambda: en
    app.dependency_overrides[get_availability_projector] = lambda: pr
    app.dependency_overrides[get_holiday_registry] = lambda: rg

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def staff_client():
    return TestClient(build_app(make_staff()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    App with NO auth overrides, only the core mocked out.
    Use this when you want real scope/auth deps to run so you can assert 401/403/422.
    """
    app = _bare_app()
    engine, projector, registry = _noop_engine(), _noop_projector(), _noop_registry()
    app.dependency_overrides[get_booking_engine] = lambda: engine
    app.dependency_overrides[get_availability_projector] = lambda: projector
    app.dependency_overrides[get_holiday_registry] = lambda: registry
    return app


@pytest.fixture()
def client_factory():
    def _make(current_user, engine=None, projector=None, registry=None) -> TestClient:
        return TestClient(
            build_app(
                current_user,
                engine=engine,
                projector=projector,
                registry=registry,
            ),
            raise_server_exceptions=True,
        )

    return _make
