"""
Relation Sync — Bulk Mutator

assign / unassign one key across many dependents. Reads run
concurrently; writes go out through batch_write with no cross-record
atomicity. A record already in the target state is not written, so a
retried call changes nothing the first call already did.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from engine.relsync.errors import NotFound, UnknownReference
from engine.relsync.index import RelationIndex
from engine.relsync.patches import add_key, holds_other_key, remove_keys
from engine.relsync.store import EntityStore
from engine.relsync.types import BulkResult, Record, RelationSpec, SyncOptions, WriteOp
from engine.relsync.validator import load_valid_keys
from engine.relsync.writer import PatchFn, chunked, gather_limited

logger = logging.getLogger(__name__)


class BulkMutator:
    """Set-membership changes for one relation."""

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

    async def assign(self, record_ids: list[str], key: str, *, check_reference: bool = True) -> BulkResult:
        """
        Add key to each record.

        With check_reference, a key that is not a currently existing
        referenced entity is rejected before anything is written. On a
        single-valued relation a record already holding a different key is
        reported as conflicted rather than overwritten, so unassign can
        always undo an assign.
        """
        if check_reference and key not in await load_valid_keys(self.store, self.spec):
            raise UnknownReference(self.spec.reference(key))

        def patch(record):
            return add_key(self.spec, record, key)

        def conflicts(record):
            return holds_other_key(self.spec, record, key)

        return await self._mutate("assign", record_ids, key, patch, conflicts)

    async def unassign(self, record_ids: list[str], key: str) -> BulkResult:
        """Remove key from each record that holds it."""

        def patch(record):
            return remove_keys(self.spec, record, {key})

        return await self._mutate("unassign", record_ids, key, patch)

    async def _read(self, record_id: str) -> Record | None:
        try:
            return await self.store.get(self.spec.dependent_collection, record_id)
        except NotFound:
            return None

    async def _mutate(
        self,
        operation: str,
        record_ids: list[str],
        key: str,
        patch_fn: PatchFn,
        conflict_fn: Callable[[Record], bool] | None = None,
    ) -> BulkResult:
        result = BulkResult(relation=self.spec.name, operation=operation, key=key)
        ids = list(dict.fromkeys(str(rid) for rid in record_ids))
        records = await gather_limited([self._read(rid) for rid in ids], self.options.read_concurrency)

        ops: list[WriteOp] = []
        refs_after: dict[str, set[str]] = {}
        for rid, record in zip(ids, records):
            if record is None:
                result.missing.append(rid)
                continue
            if conflict_fn is not None and conflict_fn(record):
                result.conflicted.append(rid)
                continue
            patch = patch_fn(record)
            if patch is None:
                result.unchanged.append(rid)
                continue
            refs_after[rid] = self.spec.references_of({**record, **patch})
            ops.append(WriteOp(self.spec.dependent_collection, rid, patch))

        for chunk in chunked(ops, self.options.chunk_size):
            batch = await self.store.batch_write(chunk)
            for rid in batch.succeeded:
                result.succeeded.append(rid)
                self.index.record_changed(rid, refs_after[rid])
            result.missing.extend(batch.missing)
            for rid, reason in batch.failed.items():
                logger.warning("bulk: %s %r on %s failed: %s", operation, key, rid, reason)
                result.failed.append(rid)

        logger.info(
            "bulk: %s %s %r: %d written, %d unchanged, %d conflicted, %d missing, %d failed",
            operation,
            self.spec.kind,
            key,
            len(result.succeeded),
            len(result.unchanged),
            len(result.conflicted),
            len(result.missing),
            len(result.failed),
        )
        return result
