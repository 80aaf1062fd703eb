"""Relation Sync — Stats Reporter. Read-only aggregates over a fresh scan of the dependents."""

from __future__ import annotations

import asyncio

from engine.relsync.index import RelationIndex
from engine.relsync.store import EntityStore
from engine.relsync.types import RelationSpec, StatsReport
from engine.relsync.validator import load_valid_keys


class StatsReporter:
    def __init__(self, store: EntityStore, spec: RelationSpec, index: RelationIndex) -> None:
        self.store = store
        self.spec = spec
        self.index = index

    async def report(self) -> StatsReport:
        valid, references = await asyncio.gather(
            load_valid_keys(self.store, self.spec),
            self.index.scan(),
        )

        # Only references to live entities count towards the mean
        counts = dict.fromkeys(valid, 0)
        orphaned = 0
        for keys in references.values():
            for key in keys:
                if key in counts:
                    counts[key] += 1
                else:
                    orphaned += 1

        mean = round(sum(counts.values()) / len(counts), 2) if counts else 0.0
        return StatsReport(
            relation=self.spec.name,
            total_entities=len(counts),
            total_dependents=len(references),
            entities_without_dependents=sorted(k for k, n in counts.items() if n == 0),
            dependents_without_references=sorted(rid for rid, keys in references.items() if not keys),
            mean_dependents_per_entity=mean,
            orphaned_references=orphaned,
        )
