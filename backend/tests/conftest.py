"""
Pytest configuration and fixtures for the relation sync service tests.

Route tests run against a MemoryStore injected through the get_store
dependency, so no database is needed. Postgres adapter tests skip unless
DATABASE_URL is set.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("TESTING", "true")

from uuid import UUID, uuid4  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import Depends  # noqa: E402

from backend.auth import create_jwt, get_current_couple  # noqa: E402
from backend.main import app  # noqa: E402
from backend.routes.sync import get_store  # noqa: E402
from engine.relsync.store import MemoryStore  # noqa: E402


def seed_planner(store: MemoryStore) -> None:
    """Two events, four guests, two tables for the reception."""
    store.seed("events", [{"id": "ev_c", "name": "Ceremony"}, {"id": "ev_r", "name": "Reception"}])
    store.seed(
        "guests",
        [
            {"id": "g1", "events": ["Ceremony", "Reception"], "rsvp": {"status": "accepted"}},
            {"id": "g2", "events": ["Reception"], "rsvp": {"status": "pending"}},
            {"id": "g3", "events": ["Ceremony"], "rsvp": {"status": "pending"}},
            {"id": "g4", "events": [], "rsvp": {"status": "pending"}},
        ],
    )
    store.seed(
        "tables",
        [
            {"id": "tb1", "eventName": "Reception", "capacity": 4, "guestIds": []},
            {"id": "tb2", "eventName": "Reception", "capacity": 2, "guestIds": []},
        ],
    )


@pytest.fixture
def store() -> MemoryStore:
    s = MemoryStore()
    seed_planner(s)
    return s


@pytest.fixture
def couple_id() -> UUID:
    return uuid4()


@pytest.fixture
def auth_headers(couple_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt(couple_id)}"}


@pytest_asyncio.fixture(loop_scope="session")
async def async_client(store):
    """Async HTTP client against the ASGI app, with the store swapped for a MemoryStore."""

    async def memory_store(couple_id: UUID = Depends(get_current_couple)) -> MemoryStore:
        return store

    app.dependency_overrides[get_store] = memory_store
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.pop(get_store, None)
