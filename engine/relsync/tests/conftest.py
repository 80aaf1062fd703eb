"""
Relation sync test configuration.

Engine tests run against MemoryStore with function-scoped loops; no
database is needed.
"""

from __future__ import annotations

import pytest

from engine.relsync.store import MemoryStore
from engine.relsync.types import SyncOptions


def guest(guest_id: str, events: list[str] | None = None, **fields) -> dict:
    return {"id": guest_id, "firstName": guest_id.upper(), "events": list(events or []), **fields}


def seed_wedding(store: MemoryStore) -> None:
    """A small planner: three events, five guests, vendors, categories, expenses, tasks."""
    store.seed(
        "events",
        [
            {"id": "ev_ceremony", "name": "Ceremony"},
            {"id": "ev_reception", "name": "Reception"},
            {"id": "ev_welcome", "name": "Welcome Party"},
        ],
    )
    store.seed(
        "guests",
        [
            guest("g1", ["Ceremony", "Reception"]),
            guest("g2", ["Reception"]),
            guest("g3", ["Ceremony"]),
            guest("g4", ["Ceremony", "Reception", "Welcome Party"]),
            guest("g5", []),
        ],
    )
    store.seed(
        "vendors",
        [
            {"id": "v1", "name": "Bloom Florals"},
            {"id": "v2", "name": "Harbor Catering"},
        ],
    )
    store.seed(
        "budget_categories",
        [
            {"id": "cat_flowers", "name": "Flowers & Decoration"},
            {"id": "cat_catering", "name": "Catering & Drinks"},
        ],
    )
    store.seed(
        "expenses",
        [
            {"id": "x1", "vendorName": "Bloom Florals", "categoryId": "cat_flowers", "amountPaid": 400},
            {"id": "x2", "vendorName": "Harbor Catering", "categoryId": "cat_catering", "amountPaid": 2500},
            {"id": "x3", "vendorName": "Bloom Florals", "categoryId": "cat_flowers", "amountPaid": 120},
        ],
    )
    store.seed(
        "tasks",
        [
            {"id": "t1", "title": "Pay florist deposit", "expenseId": "x1"},
            {"id": "t2", "title": "Pay caterer balance", "expenseId": "x2"},
            {"id": "t3", "title": "Book band", "expenseId": None},
        ],
    )


@pytest.fixture
def store() -> MemoryStore:
    s = MemoryStore()
    seed_wedding(s)
    return s


@pytest.fixture
def options() -> SyncOptions:
    return SyncOptions()
