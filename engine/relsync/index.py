"""
Relation Sync — Relation Index

Answers "which keys does this record hold?" and "which records hold this
key?" for one relation.

The store cannot index array membership, so the ground truth is a full
scan of the dependent collection. The scan result is kept as an inverted
index (key -> record ids) that the engine patches after each of its own
writes, so a warm index serves a cascade in O(affected) instead of
O(collection). options.index_ttl_seconds bounds how long a built index
may be reused by lookup(); edits made outside the engine are only seen
after a rescan.

The cached index only answers read-only lookups. Anything that writes or
judges consistency goes to the store: cascades ask holders(), which
queries the store for the key, and validation and stats run scan().
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from engine.relsync.store import EntityStore
from engine.relsync.types import Record, RelationSpec, SyncOptions

logger = logging.getLogger(__name__)


class RelationIndex:
    """Inverted index over one relation's dependent collection."""

    def __init__(
        self,
        store: EntityStore,
        spec: RelationSpec,
        options: SyncOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.spec = spec
        self.options = options or SyncOptions()
        self._clock = clock
        self._by_key: dict[str, set[str]] = {}
        self._by_record: dict[str, set[str]] = {}
        self._built_at: float | None = None

    def references_of(self, record: Record) -> set[str]:
        return self.spec.references_of(record)

    @property
    def fresh(self) -> bool:
        if self._built_at is None:
            return False
        return self._clock() - self._built_at < self.options.index_ttl_seconds

    def invalidate(self) -> None:
        self._built_at = None

    # -- scanning -----------------------------------------------------------

    async def _scan(self) -> None:
        by_record: dict[str, set[str]] = {}
        async for rows in self.store.iter_collection(self.spec.dependent_collection, self.options.scan_page_size):
            for row in rows:
                by_record[str(row["id"])] = self.spec.references_of(row)
        self._rebuild(by_record)

    def _rebuild(self, by_record: dict[str, set[str]]) -> None:
        by_key: dict[str, set[str]] = {}
        for record_id, refs in by_record.items():
            for ref in refs:
                by_key.setdefault(ref, set()).add(record_id)
        self._by_record = by_record
        self._by_key = by_key
        self._built_at = self._clock()
        logger.debug(
            "index: scanned %d %s for %s (%d distinct keys)",
            len(by_record),
            self.spec.dependent_collection,
            self.spec.name,
            len(by_key),
        )

    async def scan(self) -> dict[str, set[str]]:
        """
        Full scan of the dependent collection, ignoring any cached state.
        Returns record_id -> keys and rebuilds the index from it.
        """
        await self._scan()
        return {record_id: set(refs) for record_id, refs in self._by_record.items()}

    async def ensure_fresh(self) -> None:
        if not self.fresh:
            await self._scan()

    # -- queries ------------------------------------------------------------

    async def dependents_referencing(self, key: str) -> list[Record]:
        """
        Every dependent record holding key, read from the store.

        Order is not guaranteed; membership is exact. The cached entries
        for key are brought in line with what the store returned.
        """
        rows = await self.store.find_referencing(
            self.spec.dependent_collection,
            self.spec.reference_field,
            key,
            self.options.scan_page_size,
        )
        matches = [row for row in rows if key in self.spec.references_of(row)]
        found = {str(row["id"]) for row in matches}
        for record_id in self._by_key.get(key, set()) - found:
            self._drop_key(record_id, key)
        for row in matches:
            self.record_changed(str(row["id"]), self.spec.references_of(row))
        return matches

    async def holders(self, key: str) -> set[str]:
        """Ids of records holding key, per the store rather than the cache."""
        return {str(row["id"]) for row in await self.dependents_referencing(key)}

    async def lookup(self, key: str) -> set[str]:
        """Ids of records holding key, served from the inverted index."""
        await self.ensure_fresh()
        return set(self._by_key.get(key, ()))

    # -- incremental maintenance -------------------------------------------

    def _drop_key(self, record_id: str, key: str) -> None:
        self._by_record.get(record_id, set()).discard(key)
        holders = self._by_key.get(key)
        if holders is not None:
            holders.discard(record_id)
            if not holders:
                del self._by_key[key]

    def record_changed(self, record_id: str, refs: set[str] | None) -> None:
        """Patch the index after the engine rewrote (or lost) a record."""
        old = self._by_record.pop(record_id, set())
        for ref in old:
            holders = self._by_key.get(ref)
            if holders is not None:
                holders.discard(record_id)
                if not holders:
                    del self._by_key[ref]
        if refs is None:
            return
        self._by_record[record_id] = set(refs)
        for ref in refs:
            self._by_key.setdefault(ref, set()).add(record_id)
