"""
Postgres-backed Entity Store for the relation sync engine.

Every planner record is one row of the documents table:

    documents(couple_id uuid, collection text, id text, data jsonb, updated_at)

RLS scopes every query to the couple set on the connection, so a store
instance only ever sees one couple's planner. Field-level patches use
jsonb concatenation (data || patch), which leaves fields outside the
patch untouched.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

import asyncpg

from backend.db import couple_conn, system_conn
from engine.relsync.errors import (
    CapacityExceeded,
    NotFound,
    StoreUnavailable,
    TransactionFailed,
    WriteFailed,
)
from engine.relsync.store import DocRef, EntityStore, WriteFn
from engine.relsync.types import BatchResult, Record, WriteOp

logger = logging.getLogger(__name__)

# Errors that mean the database cannot be reached at all
_UNAVAILABLE = (
    OSError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.ConnectionDoesNotExistError,
)


def _row_to_record(row: asyncpg.Record) -> Record:
    """Convert a documents row to an engine record (data plus its id)."""
    record = dict(row["data"] or {})
    record["id"] = row["id"]
    return record


class PostgresEntityStore(EntityStore):
    """EntityStore over the documents table for one couple."""

    def __init__(self, couple_id: UUID, transaction_limit: int = 500) -> None:
        self.couple_id = couple_id
        self.transaction_limit = transaction_limit

    @asynccontextmanager
    async def _conn(self):
        try:
            async with couple_conn(self.couple_id) as conn:
                yield conn
        except _UNAVAILABLE as e:
            logger.error("document_store: database unreachable: %s", e)
            raise StoreUnavailable(str(e)) from e

    # -- reads --------------------------------------------------------------

    async def get(self, collection: str, record_id: str) -> Record:
        async with self._conn() as conn:
            row = await conn.fetchrow(
                "SELECT id, data FROM documents WHERE collection = $1 AND id = $2",
                collection,
                record_id,
            )
        if row is None:
            raise NotFound(collection, record_id)
        return _row_to_record(row)

    async def page(self, collection: str, after: str | None, limit: int) -> list[Record]:
        async with self._conn() as conn:
            rows = await conn.fetch(
                """
                SELECT id, data FROM documents
                WHERE collection = $1 AND ($2::text IS NULL OR id > $2)
                ORDER BY id
                LIMIT $3
                """,
                collection,
                after,
                limit,
            )
        return [_row_to_record(row) for row in rows]

    async def list(self, collection: str, where: dict[str, Any] | None = None) -> list[Record]:
        """Equality filters are pushed down as jsonb containment."""
        if not where:
            return await super().list(collection)
        async with self._conn() as conn:
            rows = await conn.fetch(
                "SELECT id, data FROM documents WHERE collection = $1 AND data @> $2 ORDER BY id",
                collection,
                where,
            )
        return [_row_to_record(row) for row in rows]

    async def find_referencing(self, collection: str, field: str, key: str, page_size: int = 200) -> list[Record]:
        """Containment on the GIN index: {field: [key]} for lists, {field: key} for scalars."""
        async with self._conn() as conn:
            rows = await conn.fetch(
                """
                SELECT id, data FROM documents
                WHERE collection = $1 AND (data @> $2 OR data @> $3)
                ORDER BY id
                """,
                collection,
                {field: [key]},
                {field: key},
            )
        return [_row_to_record(row) for row in rows]

    # -- writes -------------------------------------------------------------

    @staticmethod
    def _data(patch: Record) -> Record:
        return {k: v for k, v in patch.items() if k != "id"}

    async def _update(self, conn: asyncpg.Connection, collection: str, record_id: str, patch: Record) -> bool:
        updated = await conn.fetchval(
            """
            UPDATE documents SET data = data || $3, updated_at = now()
            WHERE collection = $1 AND id = $2
            RETURNING id
            """,
            collection,
            record_id,
            self._data(patch),
        )
        return updated is not None

    async def write(self, collection: str, record_id: str, patch: Record) -> None:
        try:
            async with self._conn() as conn:
                found = await self._update(conn, collection, record_id, patch)
        except asyncpg.PostgresError as e:
            raise WriteFailed(collection, record_id, str(e)) from e
        if not found:
            raise NotFound(collection, record_id)

    async def put(self, collection: str, record_id: str, data: Record) -> None:
        try:
            async with self._conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO documents (couple_id, collection, id, data, updated_at)
                    VALUES ($1, $2, $3, $4, now())
                    ON CONFLICT (couple_id, collection, id)
                    DO UPDATE SET data = EXCLUDED.data, updated_at = now()
                    """,
                    self.couple_id,
                    collection,
                    record_id,
                    self._data(data),
                )
        except asyncpg.PostgresError as e:
            raise WriteFailed(collection, record_id, str(e)) from e

    async def delete(self, collection: str, record_id: str) -> None:
        try:
            async with self._conn() as conn:
                await conn.execute(
                    "DELETE FROM documents WHERE collection = $1 AND id = $2",
                    collection,
                    record_id,
                )
        except asyncpg.PostgresError as e:
            raise WriteFailed(collection, record_id, str(e)) from e

    async def batch_write(self, ops: list[WriteOp]) -> BatchResult:
        """Each op commits on its own; a rejected write does not roll back the others."""
        result = BatchResult()
        for op in ops:
            try:
                if op.patch is None:
                    await self.delete(op.collection, op.record_id)
                else:
                    await self.write(op.collection, op.record_id, op.patch)
            except NotFound:
                result.missing.append(op.record_id)
            except WriteFailed as e:
                result.failed[op.record_id] = e.reason or str(e)
            else:
                result.succeeded.append(op.record_id)
        return result

    async def transact(self, read_set: list[DocRef], write_fn: WriteFn) -> list[WriteOp]:
        if len(read_set) > self.transaction_limit:
            raise CapacityExceeded(self.transaction_limit, len(read_set))

        try:
            async with self._conn() as conn:
                rows = await conn.fetch(
                    """
                    SELECT d.collection, d.id, d.data
                    FROM documents d
                    JOIN unnest($1::text[], $2::text[]) AS r(collection, id)
                      ON d.collection = r.collection AND d.id = r.id
                    FOR UPDATE OF d
                    """,
                    [c for c, _ in read_set],
                    [i for _, i in read_set],
                )
                found = {(row["collection"], row["id"]): _row_to_record(row) for row in rows}
                snapshot = {ref: found.get(ref) for ref in read_set}

                ops = write_fn(snapshot)
                if len(ops) > self.transaction_limit:
                    raise CapacityExceeded(self.transaction_limit, len(ops))

                for op in ops:
                    if op.patch is None:
                        await conn.execute(
                            "DELETE FROM documents WHERE collection = $1 AND id = $2",
                            op.collection,
                            op.record_id,
                        )
                    elif not await self._update(conn, op.collection, op.record_id, op.patch):
                        # Raising inside the connection block rolls everything back
                        raise TransactionFailed(f"{op.collection}/{op.record_id} vanished during transaction")
        except asyncpg.PostgresError as e:
            raise TransactionFailed(str(e)) from e
        return ops


async def list_couples() -> list[UUID]:
    """Every couple with at least one document. System connection."""
    async with system_conn() as conn:
        rows = await conn.fetch("SELECT DISTINCT couple_id FROM documents ORDER BY couple_id")
    return [row["couple_id"] for row in rows]
