"""
Relation Sync -- Stats Reporter Tests
"""

import pytest

from engine.relsync.relations import EVENT_GUESTS, EXPENSE_TASKS
from engine.relsync.store import MemoryStore
from engine.relsync.sync import RelationSync
from engine.relsync.types import SyncOptions


class TestStats:
    @pytest.mark.asyncio
    async def test_event_guests(self, store):
        stats = await RelationSync(store, EVENT_GUESTS).stats()
        assert stats.total_entities == 3
        assert stats.total_dependents == 5
        assert stats.entities_without_dependents == []
        assert stats.dependents_without_references == ["g5"]
        assert stats.mean_dependents_per_entity == 2.33
        assert stats.orphaned_references == 0

    @pytest.mark.asyncio
    async def test_expense_tasks(self, store):
        stats = await RelationSync(store, EXPENSE_TASKS).stats()
        assert stats.entities_without_dependents == ["x3"]
        assert stats.dependents_without_references == ["t3"]
        assert stats.mean_dependents_per_entity == 0.67

    @pytest.mark.asyncio
    async def test_orphans_do_not_count_towards_mean(self, store):
        await store.write("guests", "g5", {"events": ["Brunch"]})
        stats = await RelationSync(store, EVENT_GUESTS).stats()
        assert stats.orphaned_references == 1
        assert stats.mean_dependents_per_entity == 2.33
        assert stats.dependents_without_references == []

    @pytest.mark.asyncio
    async def test_empty_store(self):
        stats = await RelationSync(MemoryStore(), EVENT_GUESTS).stats()
        assert stats.total_entities == 0
        assert stats.mean_dependents_per_entity == 0.0

    @pytest.mark.asyncio
    async def test_read_only(self, store):
        await RelationSync(store, EVENT_GUESTS).stats()
        assert store.write_log == []

    @pytest.mark.asyncio
    async def test_counts_records_edited_outside_the_engine(self, store):
        sync = RelationSync(store, EVENT_GUESTS, SyncOptions(index_ttl_seconds=3600))
        await sync.stats()
        await store.write("guests", "g5", {"events": ["Welcome Party", "Brunch"]})

        stats = await sync.stats()

        assert stats.dependents_without_references == []
        assert stats.orphaned_references == 1
        assert stats.mean_dependents_per_entity == 2.67
