"""
Tests for the sync service wiring and the scheduled repair pass.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from backend.services.sync_service import SyncService
from engine.relsync.errors import UnknownRelation
from engine.relsync.relations import RELATIONS
from engine.relsync.store import MemoryStore
from engine.relsync.types import SyncOptions

pytestmark = pytest.mark.asyncio(loop_scope="session")


def drifted_store() -> MemoryStore:
    """One orphan in event_guests, one in vendor_expenses."""
    store = MemoryStore()
    store.seed("events", [{"id": "ev_r", "name": "Reception"}])
    store.seed("guests", [{"id": "g1", "events": ["Reception", "Rehearsal"]}])
    store.seed("vendors", [{"id": "v1", "name": "Bloom Florals"}])
    store.seed("expenses", [{"id": "x1", "vendorName": "Old Florist", "categoryId": None}])
    return store


class TestSyncService:
    async def test_relation_uses_configured_options(self):
        options = SyncOptions(chunk_size=7)
        service = SyncService(options, store_factory=lambda couple_id: MemoryStore())
        sync = service.relation(MemoryStore(), "event_guests")
        assert sync.options.chunk_size == 7
        assert sync.spec.name == "event_guests"

    async def test_unknown_relation(self):
        service = SyncService(SyncOptions(), store_factory=lambda couple_id: MemoryStore())
        with pytest.raises(UnknownRelation):
            service.relation(MemoryStore(), "nope")

    async def test_repair_couple_covers_every_relation(self):
        couple = uuid4()
        store = drifted_store()
        service = SyncService(SyncOptions(), store_factory=lambda couple_id: store)

        reports = await service.repair_couple(couple)

        assert reports["event_guests"].updated == ["g1"]
        assert reports["vendor_expenses"].updated == ["x1"]
        assert reports["table_guests"].updated == []
        assert set(reports) == set(RELATIONS)
        assert (await store.get("guests", "g1"))["events"] == ["Reception"]
        assert (await store.get("expenses", "x1"))["vendorName"] is None

    async def test_one_couple_failing_does_not_stop_the_rest(self):
        broken, healthy = uuid4(), uuid4()
        stores = {broken: drifted_store(), healthy: drifted_store()}
        stores[broken].unavailable = True
        service = SyncService(SyncOptions(), store_factory=lambda couple_id: stores[couple_id])

        results = await service.repair_couples([broken, healthy])

        assert list(results) == [healthy]
        assert (await stores[healthy].get("guests", "g1"))["events"] == ["Reception"]
