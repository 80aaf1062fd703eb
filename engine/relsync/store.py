"""
Relation Sync — Entity Store Adapter

Abstract interface over a document store: named collections of records
keyed by id. Implement with Postgres for production
(backend.repos.document_store), or in-memory for tests.

The store offers no cross-document atomicity except transact(), which
is bounded: a read or write set larger than transaction_limit fails
with CapacityExceeded instead of being silently truncated.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Callable
from typing import Any

from engine.relsync.errors import (
    CapacityExceeded,
    NotFound,
    StoreUnavailable,
    TransactionFailed,
    WriteFailed,
)
from engine.relsync.types import BatchResult, Record, WriteOp

DocRef = tuple[str, str]
WriteFn = Callable[[dict[DocRef, Record | None]], list[WriteOp]]


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class EntityStore:
    """
    Abstract store interface.

    Records are plain dicts that always carry their "id". Patches are
    field-level: only the keys present in the patch are overwritten, so a
    concurrent edit to another field of the same record is never clobbered.
    """

    transaction_limit: int = 500

    async def get(self, collection: str, record_id: str) -> Record:
        """Fetch one record. Raises NotFound."""
        raise NotImplementedError

    async def page(self, collection: str, after: str | None, limit: int) -> list[Record]:
        """Records with id > after, in id order, at most limit of them."""
        raise NotImplementedError

    async def write(self, collection: str, record_id: str, patch: Record) -> None:
        """Apply a field-level patch to an existing record. Raises NotFound or WriteFailed."""
        raise NotImplementedError

    async def put(self, collection: str, record_id: str, data: Record) -> None:
        """Create or replace a whole record. Raises WriteFailed."""
        raise NotImplementedError

    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record. Deleting a missing record is not an error. Raises WriteFailed."""
        raise NotImplementedError

    async def batch_write(self, ops: list[WriteOp]) -> BatchResult:
        """Apply writes independently. Partial failure is reported, not raised."""
        raise NotImplementedError

    async def transact(self, read_set: list[DocRef], write_fn: WriteFn) -> list[WriteOp]:
        """
        Read read_set, hand the snapshot to write_fn, apply the ops it returns
        all-or-nothing.

        Raises CapacityExceeded if either set exceeds transaction_limit, and
        TransactionFailed if any write is rejected (nothing is applied).
        """
        raise NotImplementedError

    async def iter_collection(self, collection: str, page_size: int = 200) -> AsyncIterator[list[Record]]:
        """
        Yield a collection page by page.

        Every page is a separate await, so cancelling the surrounding task
        stops the scan at the next page boundary.
        """
        after: str | None = None
        while True:
            rows = await self.page(collection, after, page_size)
            if not rows:
                return
            yield rows
            if len(rows) < page_size:
                return
            after = str(rows[-1]["id"])

    async def find_referencing(self, collection: str, field: str, key: str, page_size: int = 200) -> list[Record]:
        """
        Records whose field equals key or, for a list field, contains it.

        Read from the store itself, never from a cache, so edits made
        outside the engine are seen. The default pages through the whole
        collection; stores that can index the field should override it.
        """
        matches: list[Record] = []
        async for rows in self.iter_collection(collection, page_size):
            for row in rows:
                value = row.get(field)
                held = value if isinstance(value, (list, tuple)) else [value]
                if key in (str(v) for v in held if v not in (None, "")):
                    matches.append(row)
        return matches

    async def list(self, collection: str, where: dict[str, Any] | None = None) -> list[Record]:
        """All records of a collection, optionally filtered by field equality."""
        records: list[Record] = []
        async for rows in self.iter_collection(collection):
            for row in rows:
                if where and any(row.get(k) != v for k, v in where.items()):
                    continue
                records.append(row)
        return records


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class MemoryStore(EntityStore):
    """
    In-memory storage for testing.

    Supports failure injection (per-record write failures, whole-store
    outage) and records every applied write in write_log.
    """

    def __init__(self, transaction_limit: int = 500, read_delay: float = 0.0) -> None:
        self.transaction_limit = transaction_limit
        self.read_delay = read_delay
        self.collections: dict[str, dict[str, Record]] = {}
        self.write_log: list[WriteOp] = []
        self.transactions = 0
        self.unavailable = False
        self._write_failures: dict[DocRef, int] = {}

    # -- test helpers -------------------------------------------------------

    def seed(self, collection: str, records: list[Record]) -> None:
        bucket = self.collections.setdefault(collection, {})
        for record in records:
            bucket[str(record["id"])] = copy.deepcopy(record)

    def inject_write_failure(self, collection: str, record_id: str, times: int = 1) -> None:
        """Make the next `times` writes to this record fail."""
        self._write_failures[(collection, record_id)] = times

    def snapshot(self, collection: str) -> dict[str, Record]:
        return copy.deepcopy(self.collections.get(collection, {}))

    # -- protocol -----------------------------------------------------------

    def _check_available(self) -> None:
        if self.unavailable:
            raise StoreUnavailable("memory store marked unavailable")

    def _take_failure(self, collection: str, record_id: str) -> bool:
        remaining = self._write_failures.get((collection, record_id), 0)
        if remaining <= 0:
            return False
        self._write_failures[(collection, record_id)] = remaining - 1
        return True

    def _apply(self, op: WriteOp) -> None:
        bucket = self.collections.setdefault(op.collection, {})
        if op.patch is None:
            bucket.pop(op.record_id, None)
        else:
            bucket[op.record_id].update(copy.deepcopy(op.patch))
        self.write_log.append(op)

    async def get(self, collection: str, record_id: str) -> Record:
        self._check_available()
        await asyncio.sleep(self.read_delay)
        record = self.collections.get(collection, {}).get(record_id)
        if record is None:
            raise NotFound(collection, record_id)
        return copy.deepcopy(record)

    async def page(self, collection: str, after: str | None, limit: int) -> list[Record]:
        self._check_available()
        await asyncio.sleep(self.read_delay)
        bucket = self.collections.get(collection, {})
        ids = sorted(i for i in bucket if after is None or i > after)[:limit]
        return [copy.deepcopy(bucket[i]) for i in ids]

    async def write(self, collection: str, record_id: str, patch: Record) -> None:
        self._check_available()
        if record_id not in self.collections.get(collection, {}):
            raise NotFound(collection, record_id)
        if self._take_failure(collection, record_id):
            raise WriteFailed(collection, record_id, "injected failure")
        self._apply(WriteOp(collection, record_id, patch))

    async def put(self, collection: str, record_id: str, data: Record) -> None:
        self._check_available()
        if self._take_failure(collection, record_id):
            raise WriteFailed(collection, record_id, "injected failure")
        record = copy.deepcopy(data)
        record["id"] = record_id
        self.collections.setdefault(collection, {})[record_id] = record
        self.write_log.append(WriteOp(collection, record_id, record))

    async def delete(self, collection: str, record_id: str) -> None:
        self._check_available()
        if self._take_failure(collection, record_id):
            raise WriteFailed(collection, record_id, "injected failure")
        if record_id in self.collections.get(collection, {}):
            self._apply(WriteOp(collection, record_id, None))

    async def batch_write(self, ops: list[WriteOp]) -> BatchResult:
        self._check_available()
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
        self._check_available()
        if len(read_set) > self.transaction_limit:
            raise CapacityExceeded(self.transaction_limit, len(read_set))

        snapshot: dict[DocRef, Record | None] = {}
        for collection, record_id in read_set:
            record = self.collections.get(collection, {}).get(record_id)
            snapshot[(collection, record_id)] = copy.deepcopy(record) if record is not None else None

        ops = write_fn(snapshot)
        if len(ops) > self.transaction_limit:
            raise CapacityExceeded(self.transaction_limit, len(ops))

        # Validate everything before touching anything
        for op in ops:
            exists = op.record_id in self.collections.get(op.collection, {})
            if op.patch is not None and not exists:
                raise TransactionFailed(f"{op.collection}/{op.record_id} vanished during transaction")
            if self._take_failure(op.collection, op.record_id):
                raise TransactionFailed(f"write to {op.collection}/{op.record_id} rejected")

        for op in ops:
            self._apply(op)
        self.transactions += 1
        return ops
