"""Change history bookkeeping for taxonomy nodes.

History entries are stored JSON-ready: ``timestamp`` as ISO-8601 and
``changes`` as ``{field: {"from": old, "to": new}}``.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from pydantic_core import to_jsonable_python


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_entry(
    updated_by: str,
    changes: Mapping[str, Any],
    reason: str | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Build a single history entry."""
    return {
        "timestamp": (timestamp or utcnow()).isoformat(),
        "updated_by": updated_by,
        "changes": to_jsonable_python(dict(changes)),
        "reason": reason,
    }


def creation_entry(created_by: str, reason: str, timestamp: datetime | None = None) -> dict[str, Any]:
    """History entry recorded when a node is created."""
    return make_entry(created_by, {"created": True}, reason, timestamp)


def add_change_history_entry(
    existing_history: Sequence[Mapping[str, Any]] | None,
    updated_by: str,
    changes: Mapping[str, Any],
    reason: str | None = None,
    timestamp: datetime | None = None,
) -> list[dict[str, Any]]:
    """Return ``existing_history`` plus one new entry.

    The input sequence is never modified.
    """
    history = [dict(entry) for entry in (existing_history or [])]
    history.append(make_entry(updated_by, changes, reason, timestamp))
    return history


def compute_changes(existing: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Map each field whose value differs to ``{"from": old, "to": new}``."""
    changes: dict[str, dict[str, Any]] = {}
    for field, new_value in updates.items():
        old_value = existing.get(field)
        if new_value != old_value:
            changes[field] = {"from": old_value, "to": new_value}
    return changes
