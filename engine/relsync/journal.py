"""
Rename journal.

A rename that has to be chunked may stop part way, leaving some
dependents on the old key. Before chunking, the cascade writes
{relation, old_key, new_key} here; repair reads it back and moves the
stragglers to the new key instead of dropping the reference.

Journal writes report success as a bool. A rejected write is logged
and left to the caller to surface; it never aborts the cascade or
repair around it. Only an unreachable store propagates.
"""

from __future__ import annotations

import logging

from engine.relsync.errors import WriteFailed
from engine.relsync.store import EntityStore

logger = logging.getLogger(__name__)

JOURNAL_COLLECTION = "_sync_journal"


class RenameJournal:
    """Pending renames for one relation, persisted in the store itself."""

    def __init__(self, store: EntityStore, relation: str) -> None:
        self.store = store
        self.relation = relation

    def _doc_id(self, old_key: str) -> str:
        return f"{self.relation}:{old_key}"

    async def _put(self, old_key: str, new_key: str) -> bool:
        try:
            await self.store.put(
                JOURNAL_COLLECTION,
                self._doc_id(old_key),
                {"relation": self.relation, "old_key": old_key, "new_key": new_key},
            )
        except WriteFailed as e:
            logger.warning("journal: %s rename %r -> %r not recorded: %s", self.relation, old_key, new_key, e)
            return False
        return True

    async def pending(self) -> dict[str, str]:
        """old_key -> new_key for every unfinished rename."""
        entries = await self.store.list(JOURNAL_COLLECTION, where={"relation": self.relation})
        return {e["old_key"]: e["new_key"] for e in entries}

    async def record(self, old_key: str, new_key: str) -> bool:
        if not await self._put(old_key, new_key):
            return False
        ok = True
        # A -> B still pending and now B -> C: stragglers on A must land on C
        for earlier, target in (await self.pending()).items():
            if target == old_key and earlier != old_key:
                ok = await self._put(earlier, new_key) and ok
        logger.info("journal: %s rename %r -> %r pending", self.relation, old_key, new_key)
        return ok

    async def clear(self, old_key: str) -> bool:
        try:
            await self.store.delete(JOURNAL_COLLECTION, self._doc_id(old_key))
        except WriteFailed as e:
            logger.warning("journal: %s entry for %r not cleared: %s", self.relation, old_key, e)
            return False
        return True

    async def clear_all(self, old_keys: list[str]) -> list[str]:
        """Clear each entry; returns the keys whose entry could not be removed."""
        return [old_key for old_key in old_keys if not await self.clear(old_key)]

    async def forget_target(self, key: str) -> list[str]:
        """The rename target was deleted: stragglers are plain orphans now."""
        pending = await self.pending()
        return await self.clear_all([earlier for earlier, target in pending.items() if target == key])
