"""Audit events for hierarchy changes.

Events are emitted as structured log records; downstream log sinks
are the audit trail of record alongside each node's change_history.
"""

from typing import Any, Literal

from spm_service.infra.logging import get_logger

logger = get_logger(__name__, component="audit")

HierarchyEvent = Literal["node_created", "node_updated", "node_moved", "node_deleted"]

# Fields whose change reshapes the tree
HIGH_IMPACT_FIELDS = frozenset({"type", "parent_id"})


def record_hierarchy_event(
    event_type: HierarchyEvent,
    node_id: str,
    user_id: str,
    changes: dict[str, Any] | None = None,
    **context: Any,
) -> dict[str, Any]:
    """Log one audit event and return its payload."""
    event: dict[str, Any] = {
        "event_type": event_type,
        "node_id": node_id,
        "user_id": user_id,
        **context,
    }
    if changes is not None:
        event["changed_fields"] = sorted(changes)

    logger.info("Audit event", **event)

    if changes and HIGH_IMPACT_FIELDS.intersection(changes):
        logger.warning(
            "High-impact hierarchy change",
            node_id=node_id,
            user_id=user_id,
            fields=sorted(HIGH_IMPACT_FIELDS.intersection(changes)),
        )

    return event
