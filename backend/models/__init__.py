"""
Pydantic models for the relation sync service.

All request and response shapes defined here. No imports from db, repos, or routes.
"""

from backend.models.sync import (
    BulkRequest,
    BulkResultResponse,
    DependentsResponse,
    LifecycleEventRequest,
    RSVPChangeRequest,
    SeatingCleanupResponse,
    SeatingConflictResponse,
    SeatingOutcomeResponse,
    SeatingStatsResponse,
    SeatingValidationResponse,
    StatsResponse,
    SyncReportResponse,
    ValidationResponse,
)

__all__ = [
    # Requests
    "LifecycleEventRequest",
    "BulkRequest",
    "RSVPChangeRequest",
    # Relation responses
    "SyncReportResponse",
    "ValidationResponse",
    "BulkResultResponse",
    "StatsResponse",
    "DependentsResponse",
    # Seating responses
    "SeatingOutcomeResponse",
    "SeatingConflictResponse",
    "SeatingValidationResponse",
    "SeatingCleanupResponse",
    "SeatingStatsResponse",
]
