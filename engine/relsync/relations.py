"""
Registered relations.

The planner app links its collections by plain keys in seven places:

  event_guests           guest.events[]                              -> event.name
  vendor_expenses        expense.vendorName                          -> vendor.name
  category_expenses      expense.categoryId                          -> budget_category.id
  expense_tasks          task.expenseId                              -> expense.id
  vendor_integrations    vendor_budget_integration.vendorName        -> vendor.name
  category_integrations  vendor_budget_integration.budgetCategoryId  -> budget_category.id
  table_guests           table.guestIds[]                            -> guest.id (RSVP not declined)
"""

from __future__ import annotations

from engine.relsync.errors import UnknownRelation
from engine.relsync.types import Record, RelationSpec

ACCEPTED_STATUSES: set[str] = {"accepted", "Confirmé"}
DECLINED_STATUSES: set[str] = {"declined", "Refusé"}


def rsvp_status(guest: Record) -> str | None:
    rsvp = guest.get("rsvp") or {}
    return rsvp.get("status")


def is_accepted(status: str | None) -> bool:
    return status in ACCEPTED_STATUSES


def is_declined(status: str | None) -> bool:
    return status in DECLINED_STATUSES


def _not_declined(guest: Record) -> bool:
    return not is_declined(rsvp_status(guest))


EVENT_GUESTS = RelationSpec(
    name="event_guests",
    kind="event",
    referenced_collection="events",
    key_field="name",
    dependent_collection="guests",
    reference_field="events",
    many=True,
)

VENDOR_EXPENSES = RelationSpec(
    name="vendor_expenses",
    kind="vendor",
    referenced_collection="vendors",
    key_field="name",
    dependent_collection="expenses",
    reference_field="vendorName",
    many=False,
)

CATEGORY_EXPENSES = RelationSpec(
    name="category_expenses",
    kind="budget_category",
    referenced_collection="budget_categories",
    key_field="id",
    dependent_collection="expenses",
    reference_field="categoryId",
    many=False,
)

EXPENSE_TASKS = RelationSpec(
    name="expense_tasks",
    kind="expense",
    referenced_collection="expenses",
    key_field="id",
    dependent_collection="tasks",
    reference_field="expenseId",
    many=False,
)

# The vendor budget ledger: one row per vendor linking it to the budget
# category its expenses roll up into.
VENDOR_INTEGRATIONS = RelationSpec(
    name="vendor_integrations",
    kind="vendor",
    referenced_collection="vendors",
    key_field="name",
    dependent_collection="vendor_budget_integrations",
    reference_field="vendorName",
    many=False,
)

CATEGORY_INTEGRATIONS = RelationSpec(
    name="category_integrations",
    kind="budget_category",
    referenced_collection="budget_categories",
    key_field="id",
    dependent_collection="vendor_budget_integrations",
    reference_field="budgetCategoryId",
    many=False,
)

TABLE_GUESTS = RelationSpec(
    name="table_guests",
    kind="guest",
    referenced_collection="guests",
    key_field="id",
    dependent_collection="tables",
    reference_field="guestIds",
    many=True,
    eligible=_not_declined,
)

RELATIONS: dict[str, RelationSpec] = {
    spec.name: spec
    for spec in (
        EVENT_GUESTS,
        VENDOR_EXPENSES,
        CATEGORY_EXPENSES,
        EXPENSE_TASKS,
        VENDOR_INTEGRATIONS,
        CATEGORY_INTEGRATIONS,
        TABLE_GUESTS,
    )
}


def get_relation(name: str) -> RelationSpec:
    try:
        return RELATIONS[name]
    except KeyError:
        raise UnknownRelation(name) from None
