"""
Read-modify-write of dependent records, atomically when the store's
bounded transaction allows it and in independently committed chunks
otherwise.

Every record is re-read immediately before its patch is computed, so a
stale index only costs an extra read and a concurrent edit to another
field is never overwritten.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

from engine.relsync.errors import (
    CapacityExceeded,
    ChunkWriteFailed,
    NotFound,
    TransactionFailed,
)
from engine.relsync.index import RelationIndex
from engine.relsync.store import DocRef, EntityStore
from engine.relsync.types import Record, RelationSpec, SyncOptions, SyncReport, WriteOp

logger = logging.getLogger(__name__)

PatchFn = Callable[[Record], Record | None]
T = TypeVar("T")


def chunked(items: list, size: int) -> Iterator[list]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield items[i : i + size]


async def gather_limited(coros: list[Awaitable[T]], limit: int) -> list[T]:
    """asyncio.gather with at most `limit` awaitables in flight."""
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(coro: Awaitable[T]) -> T:
        async with semaphore:
            return await coro

    return await asyncio.gather(*(run(c) for c in coros))


class RelationWriter:
    """Applies patch functions to dependent records of one relation."""

    def __init__(
        self,
        store: EntityStore,
        spec: RelationSpec,
        index: RelationIndex,
        options: SyncOptions | None = None,
    ) -> None:
        self.store = store
        self.spec = spec
        self.index = index
        self.options = options or SyncOptions()

    def _refs_after(self, record: Record, patch: Record) -> set[str]:
        return self.spec.references_of({**record, **patch})

    # -- atomic path --------------------------------------------------------

    async def try_atomic(self, record_ids: list[str], patch_fn: PatchFn, report: SyncReport) -> bool:
        """
        Apply all patches in one bounded transaction.

        Returns False, having written nothing, when the set is too large or
        the transaction aborts; the caller then falls back to chunks.
        """
        limit = min(self.options.transaction_limit, self.store.transaction_limit)
        if len(record_ids) > limit:
            logger.info(
                "writer: %d %s exceed transaction limit %d, chunking",
                len(record_ids),
                self.spec.dependent_collection,
                limit,
            )
            return False

        collection = self.spec.dependent_collection
        read_set: list[DocRef] = [(collection, rid) for rid in record_ids]
        outcome: dict[str, tuple[str, set[str] | None]] = {}

        def write_fn(snapshot: dict[DocRef, Record | None]) -> list[WriteOp]:
            outcome.clear()
            ops: list[WriteOp] = []
            for (coll, rid), record in snapshot.items():
                if record is None:
                    outcome[rid] = ("missing", None)
                    continue
                patch = patch_fn(record)
                if patch is None:
                    outcome[rid] = ("unchanged", None)
                    continue
                outcome[rid] = ("updated", self._refs_after(record, patch))
                ops.append(WriteOp(coll, rid, patch))
            return ops

        try:
            await self.store.transact(read_set, write_fn)
        except CapacityExceeded as e:
            logger.info("writer: %s, chunking", e)
            return False
        except TransactionFailed as e:
            logger.warning("writer: transaction on %s aborted (%s), chunking", collection, e)
            return False

        for rid in record_ids:
            status, refs = outcome.get(rid, ("missing", None))
            if status == "updated":
                report.updated.append(rid)
                self.index.record_changed(rid, refs)
            elif status == "unchanged":
                report.unchanged.append(rid)
            else:
                report.missing.append(rid)
                self.index.record_changed(rid, None)
        report.atomic = True
        return True

    # -- chunked path -------------------------------------------------------

    async def apply_chunked(self, record_ids: list[str], patch_fn: PatchFn, report: SyncReport) -> None:
        """Apply patches chunk by chunk, retrying each failed chunk."""
        for chunk in chunked(record_ids, self.options.chunk_size):
            report.chunks += 1
            try:
                await self._write_with_retry(chunk, patch_fn, report)
            except ChunkWriteFailed as e:
                logger.warning(
                    "writer: %d %s still failing after retry: %s",
                    len(e.record_ids),
                    self.spec.dependent_collection,
                    ", ".join(e.record_ids),
                )
                report.failed.extend(e.record_ids)

    async def _write_with_retry(self, chunk: list[str], patch_fn: PatchFn, report: SyncReport) -> None:
        pending = chunk
        for attempt in range(self.options.chunk_retries + 1):
            pending = await self._write_chunk(pending, patch_fn, report)
            if not pending:
                return
            if attempt < self.options.chunk_retries:
                logger.warning(
                    "writer: chunk write failed for %d %s, retrying",
                    len(pending),
                    self.spec.dependent_collection,
                )
        raise ChunkWriteFailed(pending)

    async def _read(self, record_id: str) -> Record | None:
        try:
            return await self.store.get(self.spec.dependent_collection, record_id)
        except NotFound:
            return None

    async def _write_chunk(self, record_ids: list[str], patch_fn: PatchFn, report: SyncReport) -> list[str]:
        """One read-modify-write pass over a chunk. Returns ids whose write failed."""
        collection = self.spec.dependent_collection
        records = await gather_limited([self._read(rid) for rid in record_ids], self.options.read_concurrency)

        ops: list[WriteOp] = []
        refs_after: dict[str, set[str]] = {}
        for rid, record in zip(record_ids, records):
            if record is None:
                report.missing.append(rid)
                self.index.record_changed(rid, None)
                continue
            patch = patch_fn(record)
            if patch is None:
                report.unchanged.append(rid)
                continue
            refs_after[rid] = self._refs_after(record, patch)
            ops.append(WriteOp(collection, rid, patch))

        if not ops:
            return []

        result = await self.store.batch_write(ops)
        for rid in result.succeeded:
            report.updated.append(rid)
            self.index.record_changed(rid, refs_after[rid])
        for rid in result.missing:
            report.missing.append(rid)
            self.index.record_changed(rid, None)
        return list(result.failed)
