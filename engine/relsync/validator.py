"""
Relation Sync — Validator & Repair

validate() diffs every dependent's keys against the keys of the
referenced entities that currently exist. repair() removes what validate
found, finishing any journaled rename on the way. Both are safe to run
on a schedule: repair on a sound relation writes nothing.
"""

from __future__ import annotations

import asyncio
import logging

from engine.relsync.index import RelationIndex
from engine.relsync.journal import RenameJournal
from engine.relsync.patches import repair_keys
from engine.relsync.store import EntityStore
from engine.relsync.types import RelationSpec, SyncReport, ValidationReport
from engine.relsync.writer import RelationWriter

logger = logging.getLogger(__name__)


async def load_valid_keys(store: EntityStore, spec: RelationSpec) -> set[str]:
    """Keys of referenced entities that currently exist (and are eligible)."""
    keys: set[str] = set()
    for entity in await store.list(spec.referenced_collection):
        if spec.eligible is not None and not spec.eligible(entity):
            continue
        key = spec.key_of(entity)
        if key is not None:
            keys.add(key)
    return keys


def _singular(collection: str) -> str:
    return collection[:-1] if collection.endswith("s") else collection


class Validator:
    """Orphan detection and idempotent cleanup for one relation."""

    def __init__(
        self,
        store: EntityStore,
        spec: RelationSpec,
        index: RelationIndex,
        writer: RelationWriter,
        journal: RenameJournal,
    ) -> None:
        self.store = store
        self.spec = spec
        self.index = index
        self.writer = writer
        self.journal = journal

    async def _check(self) -> tuple[set[str], ValidationReport]:
        valid, references = await asyncio.gather(
            load_valid_keys(self.store, self.spec),
            self.index.scan(),
        )
        report = ValidationReport(relation=self.spec.name, kind=self.spec.kind, checked=len(references))
        label = _singular(self.spec.dependent_collection).replace("_", " ").capitalize()
        for record_id in sorted(references):
            dangling = references[record_id] - valid
            if dangling:
                report.orphaned_by_record[record_id] = dangling
                report.issues.append(
                    f"{label} {record_id} references non-existent {self.spec.kind}: {', '.join(sorted(dangling))}"
                )
        return valid, report

    async def validate(self) -> ValidationReport:
        _, report = await self._check()
        if not report.sound:
            logger.info(
                "validator: %s has %d orphaned references across %d %s",
                self.spec.name,
                report.orphan_count,
                len(report.orphaned_by_record),
                self.spec.dependent_collection,
            )
        return report

    @staticmethod
    def _note_uncleared(report: SyncReport, keys: list[str]) -> None:
        for key in keys:
            report.warnings.append(f"rename journal for {key!r} not cleared")

    async def repair(self) -> SyncReport:
        valid, validation = await self._check()
        report = SyncReport(relation=self.spec.name, operation="repair")
        pending = await self.journal.pending()
        if validation.sound:
            self._note_uncleared(report, await self.journal.clear_all(list(pending)))
            return report

        renames = {old: new for old, new in pending.items() if new in valid}

        def patch(record):
            dangling = self.spec.references_of(record) - valid
            if not dangling:
                return None
            return repair_keys(self.spec, record, dangling, renames)

        await self.writer.apply_chunked(sorted(validation.orphaned_by_record), patch, report)

        if report.complete:
            self._note_uncleared(report, await self.journal.clear_all(list(pending)))
        else:
            report.pending_rename = bool(renames)

        logger.info(
            "validator: repaired %d %s for %s%s",
            len(report.updated),
            self.spec.dependent_collection,
            self.spec.name,
            f", {len(report.failed)} failed" if report.failed else "",
        )
        return report
