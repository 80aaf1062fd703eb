"""
Pure patch builders for reference fields.

Each function looks at the record's current value and returns the
field-level patch that would bring it to the target state, or None when
the record is already there. Returning None for "nothing to do" is what
makes every cascade, repair and bulk operation idempotent.
"""

from __future__ import annotations

from engine.relsync.types import Record, RelationSpec


def _keys_in_order(value) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v not in (None, "")]
    return [str(value)]


def _dedupe(keys: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for key in keys:
        if key not in seen:
            seen.add(key)
            out.append(key)
    return out


def replace_key(spec: RelationSpec, record: Record, old_key: str, new_key: str) -> Record | None:
    """Set-replace old_key with new_key. Never introduces a duplicate."""
    value = record.get(spec.reference_field)
    if spec.many:
        current = _keys_in_order(value)
        if old_key not in current:
            return None
        return {spec.reference_field: _dedupe([new_key if k == old_key else k for k in current])}
    if value is None or str(value) != old_key:
        return None
    return {spec.reference_field: new_key}


def remove_keys(spec: RelationSpec, record: Record, keys: set[str]) -> Record | None:
    """Set-remove every key in keys."""
    value = record.get(spec.reference_field)
    if spec.many:
        current = _keys_in_order(value)
        if not any(k in keys for k in current):
            return None
        return {spec.reference_field: [k for k in current if k not in keys]}
    if value is None or str(value) not in keys:
        return None
    return {spec.reference_field: None}


def holds_other_key(spec: RelationSpec, record: Record, key: str) -> bool:
    """A single-valued field already pointing somewhere else. List fields never conflict."""
    if spec.many:
        return False
    current = _keys_in_order(record.get(spec.reference_field))
    return bool(current) and current[0] != key


def add_key(spec: RelationSpec, record: Record, key: str) -> Record | None:
    """
    Set-union with {key}. Appends, so unassign restores the prior list exactly.

    A single-valued field is only filled when empty; one holding a
    different key is left alone (see holds_other_key).
    """
    value = record.get(spec.reference_field)
    if spec.many:
        current = _keys_in_order(value)
        if key in current:
            return None
        return {spec.reference_field: current + [key]}
    if _keys_in_order(value):
        return None
    return {spec.reference_field: key}


def repair_keys(
    spec: RelationSpec,
    record: Record,
    dangling: set[str],
    renames: dict[str, str],
) -> Record | None:
    """
    Drop dangling keys, except those with a pending rename whose target
    exists: those are moved to the new key instead.
    """
    value = record.get(spec.reference_field)
    if spec.many:
        current = _keys_in_order(value)
        if not any(k in dangling for k in current):
            return None
        out: list[str] = []
        for key in current:
            if key not in dangling:
                out.append(key)
            elif key in renames:
                out.append(renames[key])
        return {spec.reference_field: _dedupe(out)}
    if value is None or str(value) not in dangling:
        return None
    return {spec.reference_field: renames.get(str(value))}
