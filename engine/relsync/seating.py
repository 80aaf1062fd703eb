"""
RSVP <-> seating synchronization.

Seating is held twice: each table lists its occupants in guestIds, and
each seated guest carries tableAssignment = "<event name>:<table id>".
An RSVP change is the trigger:

  -> declined   guest leaves every table (table_guests cascade) and loses
                its tableAssignment
  -> accepted   for each event the guest attends, pick a table with room,
                preferring one that already seats the guest's group or
                category, and write guest + table in one bounded
                transaction

Anything the trigger missed shows up in validate_seating() and is fixed
by cleanup_declined().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from engine.relsync.errors import (
    CapacityExceeded,
    NotFound,
    TransactionFailed,
    WriteFailed,
)
from engine.relsync.relations import TABLE_GUESTS, is_accepted, is_declined, rsvp_status
from engine.relsync.store import DocRef, EntityStore
from engine.relsync.sync import RelationSync
from engine.relsync.types import Record, SyncOptions, WriteOp
from engine.relsync.writer import chunked

logger = logging.getLogger(__name__)

GUESTS = "guests"
TABLES = "tables"


@dataclass
class SeatingOutcome:
    """What an RSVP change did to seating."""

    guest_id: str
    action: Literal["seated", "unseated", "unchanged", "missing"]
    tables: list[str] = field(default_factory=list)
    unplaced_events: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class SeatingConflict:
    guest_id: str
    issue: Literal["declined_seated", "accepted_unseated"]
    message: str


@dataclass
class SeatingValidation:
    conflicts: list[SeatingConflict] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.conflicts

    @property
    def issues(self) -> list[str]:
        return [c.message for c in self.conflicts]


@dataclass
class SeatingCleanup:
    tables_updated: list[str] = field(default_factory=list)
    guests_unseated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class SeatingStats:
    total_seats: int = 0
    assigned_seats: int = 0
    available_seats: int = 0
    completion_rate: int = 0


def free_seats(table: Record) -> int:
    return int(table.get("capacity") or 0) - len(table.get("guestIds") or [])


def find_suitable_table(
    guest: Record,
    tables: list[Record],
    guests_by_id: dict[str, Record],
    party_size: int | None = None,
) -> Record | None:
    """
    Pick a table with room for the party.

    A table already seating someone from the same group, or sharing a
    category, wins; otherwise the emptiest table. Ties go to the first.
    """
    required = party_size or 1
    available = [t for t in tables if free_seats(t) >= required]
    if not available:
        return None

    group = guest.get("groupId")
    categories = set(guest.get("categories") or [])
    if group or categories:
        for table in available:
            for occupant_id in table.get("guestIds") or []:
                occupant = guests_by_id.get(occupant_id)
                if occupant is None:
                    continue
                if group and occupant.get("groupId") == group:
                    return table
                if categories & set(occupant.get("categories") or []):
                    return table

    return max(available, key=free_seats)


class SeatingSync:
    """Keeps table occupancy consistent with RSVP status."""

    def __init__(self, store: EntityStore, options: SyncOptions | None = None) -> None:
        self.store = store
        self.options = options or SyncOptions()
        self.tables = RelationSync(store, TABLE_GUESTS, self.options)

    async def handle_rsvp_change(
        self,
        guest_id: str,
        old_status: str | None,
        new_status: str,
        party_size: int | None = None,
        event_names: list[str] | None = None,
    ) -> SeatingOutcome:
        try:
            guest = await self.store.get(GUESTS, guest_id)
        except NotFound:
            logger.warning("seating: guest %s not found", guest_id)
            return SeatingOutcome(guest_id=guest_id, action="missing")

        events = event_names if event_names is not None else list(guest.get("events") or [])

        if is_declined(new_status) and not is_declined(old_status):
            outcome = await self._unseat(guest)
        elif is_accepted(new_status) and not is_accepted(old_status):
            outcome = await self._seat(guest, events, party_size)
        else:
            outcome = SeatingOutcome(guest_id=guest_id, action="unchanged")

        logger.info("seating: guest %s %s -> %s: %s", guest_id, old_status, new_status, outcome.action)
        return outcome

    # -- decline ------------------------------------------------------------

    async def _unseat(self, guest: Record) -> SeatingOutcome:
        guest_id = str(guest["id"])
        report = await self.tables.on_deleted(guest_id, guest_id)
        outcome = SeatingOutcome(guest_id=guest_id, action="unseated", tables=report.updated, failed=report.failed)
        if guest.get("tableAssignment"):
            try:
                await self.store.write(GUESTS, guest_id, {"tableAssignment": None})
            except NotFound:
                outcome.action = "missing"
            except WriteFailed as e:
                logger.warning("seating: could not clear table assignment: %s", e)
                outcome.failed.append(guest_id)
        return outcome

    # -- accept -------------------------------------------------------------

    async def _seat(self, guest: Record, events: list[str], party_size: int | None) -> SeatingOutcome:
        guest_id = str(guest["id"])
        outcome = SeatingOutcome(guest_id=guest_id, action="unchanged")
        guests_by_id = {str(g["id"]): g for g in await self.store.list(GUESTS)}

        for event_name in events:
            tables = await self.store.list(TABLES, where={"eventName": event_name})
            if not tables:
                logger.info("seating: no seating plan for event %s", event_name)
                continue
            if any(guest_id in (t.get("guestIds") or []) for t in tables):
                continue

            table = find_suitable_table(guest, tables, guests_by_id, party_size)
            if table is None:
                logger.info("seating: no table with room for guest %s at %s, manual assignment needed", guest_id, event_name)
                outcome.unplaced_events.append(event_name)
                continue

            if await self._assign(guest_id, str(table["id"]), event_name, party_size):
                outcome.tables.append(str(table["id"]))
                outcome.action = "seated"
            else:
                outcome.unplaced_events.append(event_name)
        return outcome

    async def _assign(self, guest_id: str, table_id: str, event_name: str, party_size: int | None) -> bool:
        """Seat one guest at one table, both documents in one transaction."""
        required = party_size or 1
        occupants_after: set[str] = set()

        def write_fn(snapshot: dict[DocRef, Record | None]) -> list[WriteOp]:
            guest = snapshot[(GUESTS, guest_id)]
            table = snapshot[(TABLES, table_id)]
            if guest is None or table is None:
                return []
            occupants = list(table.get("guestIds") or [])
            if guest_id in occupants or free_seats(table) < required:
                return []
            occupants_after.clear()
            occupants_after.update(occupants + [guest_id])
            return [
                WriteOp(GUESTS, guest_id, {"tableAssignment": f"{event_name}:{table_id}"}),
                WriteOp(TABLES, table_id, {"guestIds": occupants + [guest_id]}),
            ]

        try:
            ops = await self.store.transact([(GUESTS, guest_id), (TABLES, table_id)], write_fn)
        except (CapacityExceeded, TransactionFailed) as e:
            logger.warning("seating: could not seat guest %s at table %s: %s", guest_id, table_id, e)
            return False
        if ops:
            self.tables.index.record_changed(table_id, occupants_after)
        return bool(ops)

    # -- consistency --------------------------------------------------------

    async def validate_seating(self) -> SeatingValidation:
        validation = SeatingValidation()
        guests = sorted(await self.store.list(GUESTS), key=lambda g: str(g["id"]))
        flagged: set[str] = set()
        for guest in guests:
            guest_id = str(guest["id"])
            status = rsvp_status(guest)
            if is_declined(status) and guest.get("tableAssignment"):
                flagged.add(guest_id)
                validation.conflicts.append(
                    SeatingConflict(guest_id, "declined_seated", f"Declined guest {guest_id} is still assigned to table")
                )
            elif is_accepted(status) and not guest.get("tableAssignment"):
                validation.conflicts.append(
                    SeatingConflict(guest_id, "accepted_unseated", f"Accepted guest {guest_id} has no table assignment")
                )

        declined = {str(g["id"]) for g in guests if is_declined(rsvp_status(g))}
        table_report = await self.tables.validate()
        for table_id, guest_ids in table_report.orphaned_by_record.items():
            for guest_id in sorted(guest_ids & declined - flagged):
                flagged.add(guest_id)
                validation.conflicts.append(
                    SeatingConflict(guest_id, "declined_seated", f"Declined guest {guest_id} is still seated at table {table_id}")
                )
        return validation

    async def cleanup_declined(self) -> SeatingCleanup:
        """Unseat every declined guest. Idempotent."""
        cleanup = SeatingCleanup()
        table_report = await self.tables.repair()
        cleanup.tables_updated.extend(table_report.updated)
        cleanup.failed.extend(table_report.failed)

        ops = [
            WriteOp(GUESTS, str(g["id"]), {"tableAssignment": None})
            for g in await self.store.list(GUESTS)
            if is_declined(rsvp_status(g)) and g.get("tableAssignment")
        ]
        for chunk in chunked(ops, self.options.chunk_size):
            batch = await self.store.batch_write(chunk)
            cleanup.guests_unseated.extend(batch.succeeded)
            cleanup.failed.extend(batch.failed)

        logger.info(
            "seating: cleanup removed %d declined guests from %d tables",
            len(cleanup.guests_unseated),
            len(cleanup.tables_updated),
        )
        return cleanup

    async def seating_stats(self) -> SeatingStats:
        total = assigned = 0
        for table in await self.store.list(TABLES):
            total += int(table.get("capacity") or 0)
            assigned += len(table.get("guestIds") or [])
        return SeatingStats(
            total_seats=total,
            assigned_seats=assigned,
            available_seats=total - assigned,
            completion_rate=round(assigned / total * 100) if total else 0,
        )
