"""
Relation Sync -- Bulk Mutator Tests

Covers:
  - assign twice equals assign once
  - unassign after assign restores the prior reference sets
  - keys that do not resolve to an existing entity are rejected
  - unknown ids are reported as missing, failed writes as failed
  - single-valued relations: empty fields are filled, held keys are never overwritten
"""

import pytest

from engine.relsync.errors import UnknownReference
from engine.relsync.relations import EVENT_GUESTS, TABLE_GUESTS, VENDOR_EXPENSES
from engine.relsync.sync import RelationSync
from engine.relsync.types import Reference, SyncOptions


# ============================================================================
# assign
# ============================================================================


class TestAssign:
    @pytest.mark.asyncio
    async def test_assign_twice_equals_once(self, store):
        sync = RelationSync(store, EVENT_GUESTS)

        first = await sync.assign(["g1", "g2"], "Welcome Party")
        once = store.snapshot("guests")
        second = await sync.assign(["g1", "g2"], "Welcome Party")

        assert sorted(first.succeeded) == ["g1", "g2"]
        assert second.succeeded == []
        assert sorted(second.unchanged) == ["g1", "g2"]
        assert store.snapshot("guests") == once
        assert once["g2"]["events"] == ["Reception", "Welcome Party"]

    @pytest.mark.asyncio
    async def test_already_present_is_not_written(self, store):
        sync = RelationSync(store, EVENT_GUESTS)
        result = await sync.assign(["g4"], "Ceremony")
        assert result.unchanged == ["g4"]
        assert store.write_log == []

    @pytest.mark.asyncio
    async def test_unknown_key_rejected(self, store):
        sync = RelationSync(store, EVENT_GUESTS)
        with pytest.raises(UnknownReference) as exc:
            await sync.assign(["g1"], "Brunch")
        assert exc.value.reference == Reference("event", "Brunch")
        assert store.write_log == []

    @pytest.mark.asyncio
    async def test_reference_check_can_be_skipped(self, store):
        sync = RelationSync(store, EVENT_GUESTS)
        result = await sync.assign(["g5"], "Brunch", check_reference=False)
        assert result.succeeded == ["g5"]

    @pytest.mark.asyncio
    async def test_declined_guest_cannot_be_seated(self, store):
        store.seed("tables", [{"id": "tb1", "guestIds": [], "capacity": 8}])
        await store.write("guests", "g3", {"rsvp": {"status": "declined"}})
        sync = RelationSync(store, TABLE_GUESTS)
        with pytest.raises(UnknownReference):
            await sync.assign(["tb1"], "g3")

    @pytest.mark.asyncio
    async def test_missing_and_failed(self, store):
        store.inject_write_failure("guests", "g3", times=1)
        sync = RelationSync(store, EVENT_GUESTS)

        result = await sync.assign(["g3", "ghost", "g5", "g5"], "Welcome Party")

        assert result.succeeded == ["g5"]
        assert result.missing == ["ghost"]
        assert result.failed == ["g3"]
        assert not result.ok

    @pytest.mark.asyncio
    async def test_chunks_and_concurrency_limits(self, store):
        sync = RelationSync(store, EVENT_GUESTS, SyncOptions(chunk_size=2, read_concurrency=1))
        result = await sync.assign(["g1", "g2", "g3", "g5"], "Welcome Party")
        assert sorted(result.succeeded) == ["g1", "g2", "g3", "g5"]
        assert result.ok

    @pytest.mark.asyncio
    async def test_single_valued_assign_fills_empty_field(self, store):
        store.seed("expenses", [{"id": "x4", "vendorName": None, "amountPaid": 90}])
        sync = RelationSync(store, VENDOR_EXPENSES)
        result = await sync.assign(["x4", "x2"], "Harbor Catering")
        assert result.succeeded == ["x4"]
        assert result.unchanged == ["x2"]
        assert result.ok
        assert (await store.get("expenses", "x4"))["vendorName"] == "Harbor Catering"

    @pytest.mark.asyncio
    async def test_single_valued_assign_never_overwrites(self, store):
        sync = RelationSync(store, VENDOR_EXPENSES)
        result = await sync.assign(["x1"], "Harbor Catering")
        assert result.conflicted == ["x1"]
        assert result.succeeded == []
        assert not result.ok
        assert (await store.get("expenses", "x1"))["vendorName"] == "Bloom Florals"
        assert store.write_log == []


# ============================================================================
# unassign
# ============================================================================


class TestUnassign:
    @pytest.mark.asyncio
    async def test_unassign_restores_prior_sets(self, store):
        sync = RelationSync(store, EVENT_GUESTS)
        ids = ["g1", "g2", "g3", "g4", "g5"]
        before = store.snapshot("guests")

        await sync.assign(ids, "Welcome Party")
        await sync.unassign(ids, "Welcome Party")

        after = store.snapshot("guests")
        # g4 already had the key, so unassign takes it away
        for rid in ("g1", "g2", "g3", "g5"):
            assert after[rid]["events"] == before[rid]["events"]
        assert after["g4"]["events"] == ["Ceremony", "Reception"]

    @pytest.mark.asyncio
    async def test_unassign_absent_key_unchanged(self, store):
        sync = RelationSync(store, EVENT_GUESTS)
        result = await sync.unassign(["g2", "g5"], "Ceremony")
        assert sorted(result.unchanged) == ["g2", "g5"]
        assert store.write_log == []

    @pytest.mark.asyncio
    async def test_unassign_updates_index(self, store):
        sync = RelationSync(store, EVENT_GUESTS, SyncOptions(index_ttl_seconds=3600))
        assert await sync.index.lookup("Ceremony") == {"g1", "g3", "g4"}
        await sync.unassign(["g1"], "Ceremony")
        assert await sync.index.lookup("Ceremony") == {"g3", "g4"}

    @pytest.mark.asyncio
    async def test_single_valued_unassign_after_assign_restores_prior_value(self, store):
        store.seed("expenses", [{"id": "x4", "vendorName": None, "amountPaid": 90}])
        sync = RelationSync(store, VENDOR_EXPENSES)
        before = store.snapshot("expenses")

        await sync.assign(["x1", "x2", "x4"], "Harbor Catering")
        await sync.unassign(["x1", "x4"], "Harbor Catering")

        after = store.snapshot("expenses")
        assert after["x1"]["vendorName"] == "Bloom Florals"
        assert after["x4"]["vendorName"] is None
        assert after["x1"] == before["x1"]

    @pytest.mark.asyncio
    async def test_single_valued_unassign(self, store):
        sync = RelationSync(store, VENDOR_EXPENSES)
        result = await sync.unassign(["x1", "x2"], "Bloom Florals")
        assert result.succeeded == ["x1"]
        assert (await store.get("expenses", "x1"))["vendorName"] is None
