"""
Relation Sync — keeps denormalized, weakly-referenced relationships
consistent in a store without foreign keys or unbounded transactions.

Components:
  store      — EntityStore protocol + MemoryStore
  index      — key <-> dependent record inverted index
  cascade    — created / renamed / deleted propagation
  validator  — orphan detection and repair
  bulk       — assign / unassign across many records
  stats      — read-only aggregates
  seating    — RSVP-driven table occupancy

RelationSync bundles all of them for one relation.
"""

from engine.relsync.errors import (
    CapacityExceeded,
    NotFound,
    StoreUnavailable,
    UnknownReference,
    UnknownRelation,
)
from engine.relsync.relations import RELATIONS, get_relation
from engine.relsync.seating import SeatingSync
from engine.relsync.store import EntityStore, MemoryStore
from engine.relsync.sync import RelationSync
from engine.relsync.types import (
    BulkResult,
    LifecycleEvent,
    Reference,
    RelationSpec,
    StatsReport,
    SyncOptions,
    SyncReport,
    ValidationReport,
)

__all__ = [
    "RelationSync",
    "SeatingSync",
    "EntityStore",
    "MemoryStore",
    "RELATIONS",
    "get_relation",
    "RelationSpec",
    "Reference",
    "LifecycleEvent",
    "SyncOptions",
    "SyncReport",
    "ValidationReport",
    "BulkResult",
    "StatsReport",
    "NotFound",
    "CapacityExceeded",
    "StoreUnavailable",
    "UnknownReference",
    "UnknownRelation",
]
