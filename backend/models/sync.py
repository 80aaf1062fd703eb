"""Request and response shapes for the relation sync routes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from engine.relsync.seating import SeatingCleanup, SeatingOutcome, SeatingStats, SeatingValidation
from engine.relsync.types import BulkResult, LifecycleEvent, StatsReport, SyncReport, ValidationReport


class LifecycleEventRequest(BaseModel):
    """What the CRUD layer sends after creating, renaming or deleting a referenced entity."""

    model_config = {"extra": "forbid"}

    type: Literal["created", "renamed", "deleted"]
    entity_id: str = Field(min_length=1)
    old_key: str | None = None
    new_key: str | None = None

    def to_event(self) -> LifecycleEvent:
        return LifecycleEvent(type=self.type, entity_id=self.entity_id, old_key=self.old_key, new_key=self.new_key)


class BulkRequest(BaseModel):
    """What the client sends to assign / unassign one key across many records."""

    model_config = {"extra": "forbid"}

    record_ids: list[str] = Field(min_length=1, max_length=5000)
    key: str = Field(min_length=1)


class RSVPChangeRequest(BaseModel):
    """What the client sends when a guest's RSVP status changes."""

    model_config = {"extra": "forbid"}

    guest_id: str = Field(min_length=1)
    old_status: str | None = None
    new_status: str = Field(min_length=1)
    party_size: int | None = Field(default=None, ge=1)
    event_names: list[str] | None = None


class SyncReportResponse(BaseModel):
    relation: str
    operation: str
    key: str | None
    updated: list[str]
    unchanged: list[str]
    missing: list[str]
    failed: list[str]
    atomic: bool
    chunks: int
    pending_rename: bool
    warnings: list[str]
    complete: bool

    @classmethod
    def from_report(cls, report: SyncReport) -> SyncReportResponse:
        return cls(**report.to_dict())


class ValidationResponse(BaseModel):
    relation: str
    sound: bool
    checked: int
    orphan_count: int
    orphaned: dict[str, list[str]]  # record id -> dangling keys
    issues: list[str]

    @classmethod
    def from_report(cls, report: ValidationReport) -> ValidationResponse:
        return cls(
            relation=report.relation,
            sound=report.sound,
            checked=report.checked,
            orphan_count=report.orphan_count,
            orphaned={rid: sorted(keys) for rid, keys in report.orphaned_by_record.items()},
            issues=report.issues,
        )


class BulkResultResponse(BaseModel):
    relation: str
    operation: str
    key: str
    succeeded: list[str]
    unchanged: list[str]
    missing: list[str]
    failed: list[str]
    conflicted: list[str]
    ok: bool

    @classmethod
    def from_result(cls, result: BulkResult) -> BulkResultResponse:
        return cls(
            relation=result.relation,
            operation=result.operation,
            key=result.key,
            succeeded=result.succeeded,
            unchanged=result.unchanged,
            missing=result.missing,
            failed=result.failed,
            conflicted=result.conflicted,
            ok=result.ok,
        )


class StatsResponse(BaseModel):
    relation: str
    total_entities: int
    total_dependents: int
    entities_without_dependents: list[str]
    dependents_without_references: list[str]
    mean_dependents_per_entity: float
    orphaned_references: int

    @classmethod
    def from_report(cls, report: StatsReport) -> StatsResponse:
        return cls(
            relation=report.relation,
            total_entities=report.total_entities,
            total_dependents=report.total_dependents,
            entities_without_dependents=report.entities_without_dependents,
            dependents_without_references=report.dependents_without_references,
            mean_dependents_per_entity=report.mean_dependents_per_entity,
            orphaned_references=report.orphaned_references,
        )


class DependentsResponse(BaseModel):
    relation: str
    key: str
    record_ids: list[str]


# -- seating ----------------------------------------------------------------


class SeatingOutcomeResponse(BaseModel):
    guest_id: str
    action: str
    tables: list[str]
    unplaced_events: list[str]
    failed: list[str]

    @classmethod
    def from_outcome(cls, outcome: SeatingOutcome) -> SeatingOutcomeResponse:
        return cls(
            guest_id=outcome.guest_id,
            action=outcome.action,
            tables=outcome.tables,
            unplaced_events=outcome.unplaced_events,
            failed=outcome.failed,
        )


class SeatingConflictResponse(BaseModel):
    guest_id: str
    issue: str
    message: str


class SeatingValidationResponse(BaseModel):
    valid: bool
    conflicts: list[SeatingConflictResponse]

    @classmethod
    def from_validation(cls, validation: SeatingValidation) -> SeatingValidationResponse:
        return cls(
            valid=validation.valid,
            conflicts=[
                SeatingConflictResponse(guest_id=c.guest_id, issue=c.issue, message=c.message)
                for c in validation.conflicts
            ],
        )


class SeatingCleanupResponse(BaseModel):
    tables_updated: list[str]
    guests_unseated: list[str]
    failed: list[str]

    @classmethod
    def from_cleanup(cls, cleanup: SeatingCleanup) -> SeatingCleanupResponse:
        return cls(
            tables_updated=cleanup.tables_updated,
            guests_unseated=cleanup.guests_unseated,
            failed=cleanup.failed,
        )


class SeatingStatsResponse(BaseModel):
    total_seats: int
    assigned_seats: int
    available_seats: int
    completion_rate: int

    @classmethod
    def from_stats(cls, stats: SeatingStats) -> SeatingStatsResponse:
        return cls(
            total_seats=stats.total_seats,
            assigned_seats=stats.assigned_seats,
            available_seats=stats.available_seats,
            completion_rate=stats.completion_rate,
        )
