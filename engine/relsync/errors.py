"""
Relation sync exceptions.

Of the store errors, only StoreUnavailable escapes a cascade, repair or
bulk operation. The rest are caught inside the engine and turned into
report data. UnknownReference and UnknownRelation are caller errors and
are raised before anything is written.
"""

from __future__ import annotations

from engine.relsync.types import Reference


class SyncError(Exception):
    """Base class for relation sync errors."""


class NotFound(SyncError):
    """Record does not exist in the store."""

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection}/{record_id} not found")
        self.collection = collection
        self.record_id = record_id


class CapacityExceeded(SyncError):
    """Read or write set is larger than the store can transact atomically."""

    def __init__(self, limit: int, requested: int) -> None:
        super().__init__(f"transaction of {requested} documents exceeds limit of {limit}")
        self.limit = limit
        self.requested = requested


class WriteFailed(SyncError):
    """A single document write was rejected by the store."""

    def __init__(self, collection: str, record_id: str, reason: str = "") -> None:
        message = f"write to {collection}/{record_id} failed"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.collection = collection
        self.record_id = record_id
        self.reason = reason


class TransactionFailed(SyncError):
    """Bounded transaction aborted. Nothing was applied."""


class ChunkWriteFailed(SyncError):
    """A chunk still had failing writes after its retry."""

    def __init__(self, record_ids: list[str]) -> None:
        super().__init__(f"{len(record_ids)} writes failed after retry")
        self.record_ids = record_ids


class StoreUnavailable(SyncError):
    """The store cannot be reached at all. Terminal for the whole operation."""


class UnknownReference(SyncError):
    """Key does not resolve to a currently existing referenced entity."""

    def __init__(self, reference: Reference) -> None:
        super().__init__(f"unknown {reference.kind}: {reference.key!r}")
        self.reference = reference


class UnknownRelation(SyncError):
    """No relation registered under this name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown relation: {name!r}")
        self.name = name
