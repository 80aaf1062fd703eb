"""
Relation sync service — wires the engine to per-couple document stores.

Routes ask it for a RelationSync or SeatingSync over a store. The
scheduled repair loop walks every couple and repairs every registered
relation, so drift left by a crash or a failed chunk heals on its own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from uuid import UUID

from backend.config import settings
from backend.repos.document_store import PostgresEntityStore, list_couples
from engine.relsync.errors import StoreUnavailable
from engine.relsync.relations import RELATIONS, get_relation
from engine.relsync.seating import SeatingSync
from engine.relsync.store import EntityStore
from engine.relsync.sync import RelationSync
from engine.relsync.types import SyncOptions, SyncReport

logger = logging.getLogger(__name__)

StoreFactory = Callable[[UUID], EntityStore]


def postgres_store(couple_id: UUID) -> EntityStore:
    return PostgresEntityStore(couple_id, transaction_limit=settings.SYNC_TRANSACTION_LIMIT)


class SyncService:
    """Builds engine objects with the configured options."""

    def __init__(self, options: SyncOptions | None = None, store_factory: StoreFactory = postgres_store) -> None:
        self.options = options or settings.sync_options()
        self.store_factory = store_factory

    def relation(self, store: EntityStore, name: str) -> RelationSync:
        """Raises UnknownRelation."""
        return RelationSync(store, get_relation(name), self.options)

    def seating(self, store: EntityStore) -> SeatingSync:
        return SeatingSync(store, self.options)

    async def repair_couple(self, couple_id: UUID) -> dict[str, SyncReport]:
        """Repair every registered relation for one couple."""
        store = self.store_factory(couple_id)
        reports: dict[str, SyncReport] = {}
        for name, spec in RELATIONS.items():
            report = await RelationSync(store, spec, self.options).repair()
            reports[name] = report
            if report.updated or report.failed:
                logger.info(
                    "sync_service: couple %s %s repaired %d, %d failed",
                    couple_id,
                    name,
                    len(report.updated),
                    len(report.failed),
                )
        return reports

    async def repair_couples(self, couple_ids: list[UUID]) -> dict[UUID, dict[str, SyncReport]]:
        """Repair each couple in turn. One couple's failure never stops the rest."""
        results: dict[UUID, dict[str, SyncReport]] = {}
        for couple_id in couple_ids:
            try:
                results[couple_id] = await self.repair_couple(couple_id)
            except StoreUnavailable:
                logger.exception("sync_service: store unavailable while repairing couple %s", couple_id)
            except Exception:
                logger.exception("sync_service: repair failed for couple %s", couple_id)
        return results

    async def run_scheduled_repair(self, interval_seconds: float) -> None:
        """
        Background loop: repair every couple, then sleep.

        Runs until cancelled.
        """
        logger.info("sync_service: scheduled repair every %ss", interval_seconds)
        while True:
            try:
                couples = await list_couples()
                results = await self.repair_couples(couples)
                logger.info("sync_service: scheduled repair covered %d/%d couples", len(results), len(couples))
            except Exception:
                logger.exception("sync_service: scheduled repair pass failed")

            await asyncio.sleep(interval_seconds)


# Singleton instance
sync_service = SyncService()
