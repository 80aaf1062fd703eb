"""
Relation Sync — Shared Types

Data classes used across the store, index, cascade, validator, bulk
mutator and stats reporter.

A relation is a weak, denormalized link from a dependent record (guest,
expense, task, table) to a referenced entity (event, vendor, budget
category, expense, guest). The dependent holds the referenced entity's
key, either as a single value or inside a list. The store enforces none
of this.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

Record = dict[str, Any]


# ---------------------------------------------------------------------------
# References and relations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Reference:
    """A typed pointer to a referenced entity, e.g. Reference("event", "Reception")."""

    kind: str
    key: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.key}"


@dataclass(frozen=True)
class RelationSpec:
    """
    One weak relationship between two collections.

    key_field is the attribute of the referenced entity that dependents
    store. It is "id" for stable references and a display name (usually
    "name") where the app cross-references by name.

    many=True means reference_field holds a list of keys; many=False
    means it holds a single key or None.

    eligible, when set, narrows which referenced entities count as valid
    targets (a declined guest is not a valid table occupant).
    """

    name: str
    kind: str
    referenced_collection: str
    key_field: str
    dependent_collection: str
    reference_field: str
    many: bool = True
    eligible: Callable[[Record], bool] | None = None

    def reference(self, key: str) -> Reference:
        return Reference(self.kind, key)

    def key_of(self, entity: Record) -> str | None:
        value = entity.get(self.key_field)
        return str(value) if value not in (None, "") else None

    def references_of(self, record: Record) -> set[str]:
        """Keys held by a dependent record, as a set."""
        value = record.get(self.reference_field)
        if value is None or value == "":
            return set()
        if self.many:
            if isinstance(value, (list, tuple, set)):
                return {str(v) for v in value if v not in (None, "")}
            return {str(value)}
        return {str(value)}


@dataclass(frozen=True)
class WriteOp:
    """A field-level patch against one document. patch=None deletes the document."""

    collection: str
    record_id: str
    patch: Record | None


@dataclass
class BatchResult:
    """Outcome of a batch write. Writes are applied independently."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # record_id -> reason
    missing: list[str] = field(default_factory=list)


@dataclass
class SyncOptions:
    """Engine tunables. The backend fills these from its settings."""

    transaction_limit: int = 500
    chunk_size: int = 500
    chunk_retries: int = 1
    read_concurrency: int = 16
    index_ttl_seconds: float = 0.0
    scan_page_size: int = 200


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


@dataclass
class LifecycleEvent:
    """A create / rename / delete of a referenced entity, raised by the CRUD layer."""

    type: Literal["created", "renamed", "deleted"]
    entity_id: str
    old_key: str | None = None
    new_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "entity_id": self.entity_id,
            "old_key": self.old_key,
            "new_key": self.new_key,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LifecycleEvent:
        return cls(
            type=d["type"],
            entity_id=d["entity_id"],
            old_key=d.get("old_key"),
            new_key=d.get("new_key"),
        )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass
class SyncReport:
    """
    Outcome of a cascade or repair run.

    Failures are data, not exceptions: the UI reads `failed` and decides
    whether to prompt for another repair.
    """

    relation: str
    operation: str
    key: str | None = None
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    atomic: bool = False
    chunks: int = 0
    pending_rename: bool = False
    # bookkeeping that did not land (rename journal writes); dependents are unaffected
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "relation": self.relation,
            "operation": self.operation,
            "key": self.key,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "missing": self.missing,
            "failed": self.failed,
            "atomic": self.atomic,
            "chunks": self.chunks,
            "pending_rename": self.pending_rename,
            "warnings": self.warnings,
            "complete": self.complete,
        }


@dataclass
class ValidationReport:
    """Dangling references per dependent record."""

    relation: str
    kind: str = ""
    orphaned_by_record: dict[str, set[str]] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)
    checked: int = 0

    @property
    def sound(self) -> bool:
        return not self.orphaned_by_record

    @property
    def orphan_count(self) -> int:
        return sum(len(keys) for keys in self.orphaned_by_record.values())

    def dangling_references(self) -> list[Reference]:
        """Distinct dangling targets across all records."""
        keys = set().union(*self.orphaned_by_record.values()) if self.orphaned_by_record else set()
        return [Reference(self.kind, key) for key in sorted(keys)]


@dataclass
class BulkResult:
    """Per-id outcome of assign / unassign."""

    relation: str
    operation: str
    key: str
    succeeded: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    # single-valued records already pointing at another key; left untouched
    conflicted: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.missing and not self.conflicted


@dataclass
class StatsReport:
    """Aggregate counts derived from the relation index."""

    relation: str
    total_entities: int = 0
    total_dependents: int = 0
    entities_without_dependents: list[str] = field(default_factory=list)
    dependents_without_references: list[str] = field(default_factory=list)
    mean_dependents_per_entity: float = 0.0
    orphaned_references: int = 0
