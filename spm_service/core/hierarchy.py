"""Hierarchy validation for the portfolio -> line -> category tree.

The type rules are pure; the async helpers read parents through the
document store before any write.
"""

from typing import Any

from spm_service.config import settings
from spm_service.core.errors import ValidationError
from spm_service.core.store import NODES, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.schemas.taxonomy import NODE_TYPES, ParentChildCheck

logger = get_logger(__name__)

# Child type -> required parent type (None means top-level only)
PARENT_TYPE: dict[str, str | None] = {
    "portfolio": None,
    "line": "portfolio",
    "category": "line",
}

PORTFOLIO_HAS_PARENT = "Portfolios cannot have parent nodes - they must be top-level"
PARENT_NOT_FOUND = "Parent node not found"
LINE_NEEDS_PORTFOLIO = "Product line must have portfolio parent"
CATEGORY_NEEDS_LINE = "Category must have product line parent"
CIRCULAR_REFERENCE = "Cannot create circular reference in hierarchy"


def expected_parent_type(node_type: str) -> str | None:
    """Return the parent type a node of ``node_type`` must hang under."""
    if node_type not in PARENT_TYPE:
        raise ValidationError(f"Invalid node type: {node_type}")
    return PARENT_TYPE[node_type]


def is_valid_parent_type(child_type: str, parent_type: str) -> bool:
    """Whether ``parent_type`` may directly contain ``child_type``."""
    return child_type in PARENT_TYPE and PARENT_TYPE[child_type] == parent_type


def check_parent_child(
    child_type: str,
    parent_id: str | None,
    parent: dict[str, Any] | None,
) -> ParentChildCheck:
    """Check a proposed (type, parent) pair.

    Args:
        child_type: Type of the node being placed
        parent_id: Proposed parent id (None for top-level)
        parent: The parent document as loaded from the store, if any

    Returns:
        ParentChildCheck with the failure reason when invalid
    """
    if child_type not in NODE_TYPES:
        return ParentChildCheck(valid=False, reason=f"Invalid node type: {child_type}")

    if parent_id is None:
        if child_type != "portfolio":
            return ParentChildCheck(valid=False, reason=f"{child_type} nodes must have a parent")
        return ParentChildCheck(valid=True)

    if child_type == "portfolio":
        return ParentChildCheck(valid=False, reason=PORTFOLIO_HAS_PARENT)

    if parent is None:
        return ParentChildCheck(valid=False, reason=PARENT_NOT_FOUND)

    if not is_valid_parent_type(child_type, parent.get("type", "")):
        reason = LINE_NEEDS_PORTFOLIO if child_type == "line" else CATEGORY_NEEDS_LINE
        return ParentChildCheck(valid=False, reason=reason)

    return ParentChildCheck(valid=True)


async def evaluate_hierarchy_rules(
    store: DocumentStore,
    node_type: str,
    parent_id: str | None,
) -> ParentChildCheck:
    """Load the proposed parent (if any) and run :func:`check_parent_child`."""
    parent = None
    if parent_id is not None and node_type != "portfolio":
        parent = await store.get(NODES, parent_id)
    return check_parent_child(node_type, parent_id, parent)


async def validate_hierarchy_rules(
    store: DocumentStore,
    node_type: str,
    parent_id: str | None,
) -> None:
    """Raise ValidationError when ``(node_type, parent_id)`` breaks the tree rules."""
    check = await evaluate_hierarchy_rules(store, node_type, parent_id)
    if not check.valid:
        logger.warning(
            "Hierarchy rule violation",
            node_type=node_type,
            parent_id=parent_id,
            reason=check.reason,
        )
        raise ValidationError(check.reason or "Invalid hierarchy")


async def check_circular_reference(
    store: DocumentStore,
    node_id: str,
    candidate_parent_id: str | None,
    max_steps: int | None = None,
) -> bool:
    """Return True if making ``candidate_parent_id`` the parent of ``node_id`` closes a cycle.

    Walks upward from the candidate following ``parent_id`` links. Each
    node is visited at most once and the walk stops after ``max_steps``
    hops, so pre-existing corruption cannot loop forever.
    """
    limit = max_steps if max_steps is not None else settings.max_hierarchy_depth
    current_id = candidate_parent_id
    visited: set[str] = set()
    steps = 0

    while current_id and current_id not in visited and steps < limit:
        if current_id == node_id:
            return True

        visited.add(current_id)
        steps += 1
        node = await store.get(NODES, current_id)
        current_id = node.get("parent_id") if node else None

    if current_id and steps >= limit:
        logger.warning(
            "Parent chain walk hit iteration cap",
            node_id=node_id,
            candidate_parent_id=candidate_parent_id,
            max_steps=limit,
        )

    return False
