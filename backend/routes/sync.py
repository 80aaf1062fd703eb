"""Relation sync routes — lifecycle events, validate, repair, bulk, stats, seating."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from backend.auth import get_current_couple
from backend.models.sync import (
    BulkRequest,
    BulkResultResponse,
    DependentsResponse,
    LifecycleEventRequest,
    RSVPChangeRequest,
    SeatingCleanupResponse,
    SeatingOutcomeResponse,
    SeatingStatsResponse,
    SeatingValidationResponse,
    StatsResponse,
    SyncReportResponse,
    ValidationResponse,
)
from backend.services.sync_service import sync_service
from engine.relsync.errors import StoreUnavailable, UnknownReference, UnknownRelation
from engine.relsync.relations import RELATIONS
from engine.relsync.store import EntityStore

router = APIRouter(prefix="/api/sync", tags=["sync"])


async def get_store(couple_id: UUID = Depends(get_current_couple)) -> EntityStore:
    """The couple's document store. Tests override this dependency."""
    return sync_service.store_factory(couple_id)


@contextmanager
def engine_errors() -> Iterator[None]:
    """Map engine errors to HTTP status codes. Partial failures stay in the report body."""
    try:
        yield
    except UnknownRelation as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except UnknownReference as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Planner store unavailable. Try again shortly.",
        ) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.get("/relations", status_code=200)
async def list_relations(couple_id: UUID = Depends(get_current_couple)) -> list[str]:
    """Registered relation names."""
    return list(RELATIONS)


# ── seating (registered before /{relation} so the literal path wins) ────────


@router.post("/seating/rsvp", status_code=200)
async def rsvp_change(req: RSVPChangeRequest, store: EntityStore = Depends(get_store)) -> SeatingOutcomeResponse:
    """Seat or unseat a guest after an RSVP change."""
    with engine_errors():
        outcome = await sync_service.seating(store).handle_rsvp_change(
            req.guest_id,
            req.old_status,
            req.new_status,
            party_size=req.party_size,
            event_names=req.event_names,
        )
    return SeatingOutcomeResponse.from_outcome(outcome)


@router.get("/seating/validate", status_code=200)
async def validate_seating(store: EntityStore = Depends(get_store)) -> SeatingValidationResponse:
    with engine_errors():
        validation = await sync_service.seating(store).validate_seating()
    return SeatingValidationResponse.from_validation(validation)


@router.post("/seating/cleanup", status_code=200)
async def cleanup_seating(store: EntityStore = Depends(get_store)) -> SeatingCleanupResponse:
    """Unseat every declined guest."""
    with engine_errors():
        cleanup = await sync_service.seating(store).cleanup_declined()
    return SeatingCleanupResponse.from_cleanup(cleanup)


@router.get("/seating/stats", status_code=200)
async def seating_stats(store: EntityStore = Depends(get_store)) -> SeatingStatsResponse:
    with engine_errors():
        stats = await sync_service.seating(store).seating_stats()
    return SeatingStatsResponse.from_stats(stats)


# ── per relation ─────────────────────────────────────────────────────────────


@router.post("/{relation}/events", status_code=200)
async def lifecycle_event(
    relation: str,
    req: LifecycleEventRequest,
    store: EntityStore = Depends(get_store),
) -> SyncReportResponse:
    """
    Propagate a created / renamed / deleted referenced entity.

    Always 200 once the store is reachable: failed records come back in
    the report and the next repair finishes the job.
    """
    with engine_errors():
        report = await sync_service.relation(store, relation).apply(req.to_event())
    return SyncReportResponse.from_report(report)


@router.post("/{relation}/assign", status_code=200)
async def assign(relation: str, req: BulkRequest, store: EntityStore = Depends(get_store)) -> BulkResultResponse:
    with engine_errors():
        result = await sync_service.relation(store, relation).assign(req.record_ids, req.key)
    return BulkResultResponse.from_result(result)


@router.post("/{relation}/unassign", status_code=200)
async def unassign(relation: str, req: BulkRequest, store: EntityStore = Depends(get_store)) -> BulkResultResponse:
    with engine_errors():
        result = await sync_service.relation(store, relation).unassign(req.record_ids, req.key)
    return BulkResultResponse.from_result(result)


@router.get("/{relation}/validate", status_code=200)
async def validate(relation: str, store: EntityStore = Depends(get_store)) -> ValidationResponse:
    with engine_errors():
        report = await sync_service.relation(store, relation).validate()
    return ValidationResponse.from_report(report)


@router.post("/{relation}/repair", status_code=200)
async def repair(relation: str, store: EntityStore = Depends(get_store)) -> SyncReportResponse:
    with engine_errors():
        report = await sync_service.relation(store, relation).repair()
    return SyncReportResponse.from_report(report)


@router.get("/{relation}/stats", status_code=200)
async def stats(relation: str, store: EntityStore = Depends(get_store)) -> StatsResponse:
    with engine_errors():
        report = await sync_service.relation(store, relation).stats()
    return StatsResponse.from_report(report)


@router.get("/{relation}/dependents/{key:path}", status_code=200)
async def dependents(relation: str, key: str, store: EntityStore = Depends(get_store)) -> DependentsResponse:
    """Ids of dependent records holding key. key may contain "/" (event names do)."""
    with engine_errors():
        records = await sync_service.relation(store, relation).dependents_referencing(key)
    return DependentsResponse(relation=relation, key=key, record_ids=sorted(str(r["id"]) for r in records))
