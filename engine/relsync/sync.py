"""
Relation Sync — facade.

Wires index, writer, journal, cascade, validator, bulk mutator and stats
reporter together for one relation over one store. This is the object
the backend hands to its routes.
"""

from __future__ import annotations

from engine.relsync.bulk import BulkMutator
from engine.relsync.cascade import CascadeEngine
from engine.relsync.index import RelationIndex
from engine.relsync.journal import RenameJournal
from engine.relsync.stats import StatsReporter
from engine.relsync.store import EntityStore
from engine.relsync.types import (
    BulkResult,
    LifecycleEvent,
    Record,
    RelationSpec,
    StatsReport,
    SyncOptions,
    SyncReport,
    ValidationReport,
)
from engine.relsync.validator import Validator
from engine.relsync.writer import RelationWriter


class RelationSync:
    """All relation sync operations for one relation."""

    def __init__(self, store: EntityStore, spec: RelationSpec, options: SyncOptions | None = None) -> None:
        self.store = store
        self.spec = spec
        self.options = options or SyncOptions()
        self.index = RelationIndex(store, spec, self.options)
        self.journal = RenameJournal(store, spec.name)
        self.writer = RelationWriter(store, spec, self.index, self.options)
        self.cascade = CascadeEngine(spec, self.index, self.writer, self.journal)
        self.validator = Validator(store, spec, self.index, self.writer, self.journal)
        self.bulk = BulkMutator(store, spec, self.index, self.options)
        self.stats_reporter = StatsReporter(store, spec, self.index)

    # -- cascade ------------------------------------------------------------

    async def apply(self, event: LifecycleEvent) -> SyncReport:
        return await self.cascade.apply(event)

    async def on_created(self, entity_id: str, key: str | None = None) -> SyncReport:
        return await self.cascade.on_created(entity_id, key)

    async def on_renamed(self, entity_id: str, old_key: str, new_key: str) -> SyncReport:
        return await self.cascade.on_renamed(entity_id, old_key, new_key)

    async def on_deleted(self, entity_id: str, key: str) -> SyncReport:
        return await self.cascade.on_deleted(entity_id, key)

    # -- validation ---------------------------------------------------------

    async def validate(self) -> ValidationReport:
        return await self.validator.validate()

    async def repair(self) -> SyncReport:
        return await self.validator.repair()

    # -- bulk ---------------------------------------------------------------

    async def assign(self, record_ids: list[str], key: str, *, check_reference: bool = True) -> BulkResult:
        return await self.bulk.assign(record_ids, key, check_reference=check_reference)

    async def unassign(self, record_ids: list[str], key: str) -> BulkResult:
        return await self.bulk.unassign(record_ids, key)

    # -- read side ----------------------------------------------------------

    async def dependents_referencing(self, key: str) -> list[Record]:
        return await self.index.dependents_referencing(key)

    async def stats(self) -> StatsReport:
        return await self.stats_reporter.report()
