"""
Relation Sync — Cascade Engine

Propagates a referenced entity's lifecycle into the dependents that hold
its key:

  created  — no-op; dependents opt in later through the bulk mutator
  renamed  — set-replace old key with new key
  deleted  — set-remove key

Only records found holding the key are touched. Affected sets within the
store's transaction bound are written all-or-nothing; larger ones (or a
transaction that aborts) are written in chunks, accepting that a crash
can leave a partial rename for repair to finish.
"""

from __future__ import annotations

import logging

from engine.relsync.index import RelationIndex
from engine.relsync.journal import RenameJournal
from engine.relsync.patches import remove_keys, replace_key
from engine.relsync.types import LifecycleEvent, RelationSpec, SyncReport
from engine.relsync.writer import PatchFn, RelationWriter

logger = logging.getLogger(__name__)


class CascadeEngine:
    """Reacts to created / renamed / deleted events for one relation."""

    def __init__(
        self,
        spec: RelationSpec,
        index: RelationIndex,
        writer: RelationWriter,
        journal: RenameJournal,
    ) -> None:
        self.spec = spec
        self.index = index
        self.writer = writer
        self.journal = journal

    async def apply(self, event: LifecycleEvent) -> SyncReport:
        """Dispatch a lifecycle event from the CRUD layer."""
        if event.type == "created":
            return await self.on_created(event.entity_id, event.new_key)
        if event.type == "renamed":
            if not event.old_key or not event.new_key:
                raise ValueError("renamed event needs old_key and new_key")
            return await self.on_renamed(event.entity_id, event.old_key, event.new_key)
        if event.type == "deleted":
            key = event.old_key or event.new_key
            if not key:
                raise ValueError("deleted event needs old_key")
            return await self.on_deleted(event.entity_id, key)
        raise ValueError(f"unknown lifecycle event type: {event.type!r}")

    async def on_created(self, entity_id: str, key: str | None) -> SyncReport:
        logger.info("cascade: %s %s created (%s), nothing to propagate", self.spec.kind, key, entity_id)
        return SyncReport(relation=self.spec.name, operation="created", key=key)

    async def on_renamed(self, entity_id: str, old_key: str, new_key: str) -> SyncReport:
        report = SyncReport(relation=self.spec.name, operation="renamed", key=old_key)
        if old_key == new_key:
            return report

        def patch(record):
            return replace_key(self.spec, record, old_key, new_key)

        affected = sorted(await self.index.holders(old_key))
        if affected and not await self.writer.try_atomic(affected, patch, report):
            journaled = await self.journal.record(old_key, new_key)
            if not journaled:
                report.warnings.append(f"rename journal for {old_key!r} not written; repair will drop stragglers")
            await self.writer.apply_chunked(affected, patch, report)
            if report.complete:
                if not await self.journal.clear(old_key):
                    report.warnings.append(f"rename journal for {old_key!r} not cleared")
            else:
                report.pending_rename = journaled

        logger.info(
            "cascade: %s %r -> %r (%s) updated %d %s%s",
            self.spec.kind,
            old_key,
            new_key,
            entity_id,
            len(report.updated),
            self.spec.dependent_collection,
            f", {len(report.failed)} failed" if report.failed else "",
        )
        return report

    async def on_deleted(self, entity_id: str, key: str) -> SyncReport:
        report = SyncReport(relation=self.spec.name, operation="deleted", key=key)
        for stale in await self.journal.forget_target(key):
            report.warnings.append(f"rename journal for {stale!r} not cleared")

        def patch(record):
            return remove_keys(self.spec, record, {key})

        await self._propagate(key, patch, report)
        logger.info(
            "cascade: %s %r deleted (%s), removed from %d %s%s",
            self.spec.kind,
            key,
            entity_id,
            len(report.updated),
            self.spec.dependent_collection,
            f", {len(report.failed)} failed" if report.failed else "",
        )
        return report

    async def _propagate(self, key: str, patch: PatchFn, report: SyncReport) -> None:
        affected = sorted(await self.index.holders(key))
        if not affected:
            return
        if not await self.writer.try_atomic(affected, patch, report):
            await self.writer.apply_chunked(affected, patch, report)
