"""
Tests for the Postgres document store.

NOTE: These tests require a running PostgreSQL database with the DATABASE_URL
environment variable set. Run `alembic upgrade head` before running them.
"""

from __future__ import annotations

import os
from uuid import uuid4

import pytest
import pytest_asyncio

from engine.relsync.errors import CapacityExceeded, NotFound, WriteFailed
from engine.relsync.types import WriteOp

pytestmark = [
    pytest.mark.asyncio(loop_scope="session"),
    pytest.mark.skipif(not os.environ.get("DATABASE_URL"), reason="DATABASE_URL not set"),
]


@pytest_asyncio.fixture(loop_scope="session")
async def pg_store():
    from backend import db
    from backend.repos.document_store import PostgresEntityStore

    await db.init_pool()
    couple_id = uuid4()
    store = PostgresEntityStore(couple_id, transaction_limit=3)
    await store.put("events", "ev_r", {"name": "Reception"})
    for i in range(4):
        await store.put("guests", f"g{i}", {"events": ["Reception"], "note": f"guest {i}"})

    yield store

    async with db.system_conn() as conn:
        await conn.execute("DELETE FROM documents WHERE couple_id = $1", couple_id)
    await db.close_pool()


class TestPostgresEntityStore:
    async def test_get_and_missing(self, pg_store):
        record = await pg_store.get("guests", "g0")
        assert record == {"id": "g0", "events": ["Reception"], "note": "guest 0"}
        with pytest.raises(NotFound):
            await pg_store.get("guests", "nobody")

    async def test_write_is_field_level(self, pg_store):
        await pg_store.write("guests", "g1", {"events": []})
        record = await pg_store.get("guests", "g1")
        assert record["events"] == []
        assert record["note"] == "guest 1"

    async def test_page_in_id_order(self, pg_store):
        pages = [[r["id"] for r in rows] async for rows in pg_store.iter_collection("guests", page_size=3)]
        assert pages == [["g0", "g1", "g2"], ["g3"]]

    async def test_list_with_filter(self, pg_store):
        rows = await pg_store.list("events", where={"name": "Reception"})
        assert [r["id"] for r in rows] == ["ev_r"]

    async def test_find_referencing_list_and_scalar_fields(self, pg_store):
        await pg_store.put("expenses", "x1", {"vendorName": "Bloom Florals"})
        await pg_store.put("expenses", "x2", {"vendorName": "Harbor Catering"})
        await pg_store.put("guests", "g9", {"events": ["Ceremony", "Reception"]})

        vendors = await pg_store.find_referencing("expenses", "vendorName", "Bloom Florals")
        assert [r["id"] for r in vendors] == ["x1"]
        guests = await pg_store.find_referencing("guests", "events", "Ceremony")
        assert [r["id"] for r in guests] == ["g9"]

    async def test_rejected_put_is_write_failed(self, pg_store):
        # jsonb cannot hold a NUL character
        with pytest.raises(WriteFailed):
            await pg_store.put("guests", "bad", {"note": "\u0000"})

    async def test_batch_write_reports_missing(self, pg_store):
        result = await pg_store.batch_write(
            [WriteOp("guests", "g2", {"events": []}), WriteOp("guests", "ghost", {"events": []})]
        )
        assert result.succeeded == ["g2"]
        assert result.missing == ["ghost"]

    async def test_transact_over_limit(self, pg_store):
        with pytest.raises(CapacityExceeded):
            await pg_store.transact([("guests", f"g{i}") for i in range(4)], lambda snapshot: [])

    async def test_transact_applies_all(self, pg_store):
        def write_fn(snapshot):
            return [WriteOp(c, i, {"events": ["Dinner"]}) for (c, i), rec in snapshot.items() if rec is not None]

        ops = await pg_store.transact([("guests", "g0"), ("guests", "g3"), ("guests", "ghost")], write_fn)
        assert len(ops) == 2
        assert (await pg_store.get("guests", "g3"))["events"] == ["Dinner"]

    async def test_other_couples_invisible(self, pg_store):
        from backend.repos.document_store import PostgresEntityStore

        other = PostgresEntityStore(uuid4())
        with pytest.raises(NotFound):
            await other.get("guests", "g0")
