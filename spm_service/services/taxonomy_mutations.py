"""Taxonomy mutations - create, update, move, deactivate, reactivate, delete.

Each operation composes the hierarchy validator, the change history
recorder and single-document store calls. Multi-node operations
(cascade deactivate, force delete) issue one store call per node,
sequentially; an error part-way leaves earlier writes in place.
"""

from datetime import datetime
from typing import Any

from spm_service.core.audit import record_hierarchy_event
from spm_service.core.errors import (
    AlreadyActiveError,
    AlreadyInactiveError,
    HasChildrenError,
    NoChangesError,
    NotFoundError,
    ParentInactiveError,
    ValidationError,
)
from spm_service.core.hierarchy import (
    CIRCULAR_REFERENCE,
    PORTFOLIO_HAS_PARENT,
    check_circular_reference,
    validate_hierarchy_rules,
)
from spm_service.core.history import (
    add_change_history_entry,
    compute_changes,
    creation_entry,
    utcnow,
)
from spm_service.core.store import NODES, Document, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.schemas.taxonomy import (
    CategoryCreate,
    DeactivateResult,
    DeleteResult,
    LineCreate,
    MutationResult,
    NodeCreate,
    NodeUpdate,
    PortfolioCreate,
    SuccessResult,
)

logger = get_logger(__name__)

CreateRequest = NodeCreate | PortfolioCreate | LineCreate | CategoryCreate


class TaxonomyMutations:
    """Write operations on taxonomy nodes."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_existing(self, node_id: str) -> Document:
        node = await self._store.get(NODES, node_id)
        if node is None:
            raise NotFoundError("Node not found")
        return node

    async def _touch_parent(self, parent_id: str | None, now: datetime) -> None:
        """Refresh a parent's last_modified after its children changed."""
        if not parent_id:
            return
        parent = await self._store.get(NODES, parent_id)
        if parent is not None:
            await self._store.patch(NODES, parent_id, {"last_modified": now})

    async def _apply(
        self,
        node: Document,
        fields: dict[str, Any],
        changes: dict[str, Any],
        updated_by: str,
        reason: str | None,
        now: datetime,
    ) -> None:
        """Patch ``fields`` onto ``node`` with version bump and history entry."""
        history = add_change_history_entry(
            node.get("change_history"), updated_by, changes, reason, now
        )
        await self._store.patch(
            NODES,
            node["id"],
            {
                **fields,
                "updated_by": updated_by,
                "last_modified": now,
                "version": (node.get("version") or 0) + 1,
                "change_history": history,
            },
        )

    async def _insert(
        self,
        request: CreateRequest,
        node_type: str,
        parent_id: str | None,
        reason: str,
    ) -> str:
        now = utcnow()
        document: Document = {
            "name": request.name,
            "description": request.description,
            "type": node_type,
            "strategy": request.strategy,
            "parent_id": parent_id,
            "is_active": request.is_active,
            "created_by": request.created_by,
            "updated_by": request.updated_by or request.created_by,
            "last_modified": now,
            "version": 1,
            "change_history": [creation_entry(request.created_by, reason, now)],
        }
        node_id = await self._store.insert(NODES, document)
        await self._touch_parent(parent_id, now)

        logger.info(
            "Taxonomy node created",
            node_id=node_id,
            node_type=node_type,
            parent_id=parent_id,
            created_by=request.created_by,
        )
        record_hierarchy_event(
            "node_created",
            node_id,
            request.created_by,
            node_name=request.name,
            node_type=node_type,
            parent_id=parent_id,
        )
        return node_id

    # =========================================================================
    # Create
    # =========================================================================

    async def create(self, request: NodeCreate) -> str:
        """Create a node of any type after checking the hierarchy rules."""
        await validate_hierarchy_rules(self._store, request.type, request.parent_id)
        return await self._insert(request, request.type, request.parent_id, "Initial creation")

    async def create_portfolio(self, request: PortfolioCreate) -> str:
        if request.parent_id is not None:
            raise ValidationError(PORTFOLIO_HAS_PARENT)
        return await self._insert(request, "portfolio", None, "Portfolio creation")

    async def create_line(self, request: LineCreate) -> str:
        parent = await self._store.get(NODES, request.parent_id)
        if parent is None or parent.get("type") != "portfolio":
            raise ValidationError("Product line must have a portfolio parent")
        return await self._insert(request, "line", request.parent_id, "Product line creation")

    async def create_category(self, request: CategoryCreate) -> str:
        parent = await self._store.get(NODES, request.parent_id)
        if parent is None or parent.get("type") != "line":
            raise ValidationError("Category must have a product line parent")
        return await self._insert(request, "category", request.parent_id, "Category creation")

    # =========================================================================
    # Update / move
    # =========================================================================

    async def update(
        self,
        node_id: str,
        updates: NodeUpdate,
        updated_by: str,
        reason: str | None = None,
    ) -> MutationResult:
        """Edit fields of a node, optionally re-parenting it.

        Raises:
            NotFoundError: Node does not exist
            ValidationError: New parent closes a cycle or breaks the type rules
            NoChangesError: Every supplied field already has the given value
        """
        existing = await self._get_existing(node_id)
        fields = updates.model_dump(exclude_unset=True)

        old_parent_id = existing.get("parent_id")
        if "parent_id" in fields and fields["parent_id"] != old_parent_id:
            if await check_circular_reference(self._store, node_id, fields["parent_id"]):
                raise ValidationError(CIRCULAR_REFERENCE)
            await validate_hierarchy_rules(self._store, existing["type"], fields["parent_id"])

        changes = compute_changes(existing, fields)
        if not changes:
            raise NoChangesError()

        now = utcnow()
        await self._apply(existing, fields, changes, updated_by, reason, now)

        logger.info(
            "Taxonomy node updated",
            node_id=node_id,
            updated_by=updated_by,
            changed_fields=sorted(changes),
        )

        if "parent_id" in changes:
            await self._touch_parent(old_parent_id, now)
            await self._touch_parent(fields["parent_id"], now)
            record_hierarchy_event(
                "node_moved",
                node_id,
                updated_by,
                changes=changes,
                old_parent_id=old_parent_id,
                new_parent_id=fields["parent_id"],
            )
        else:
            record_hierarchy_event("node_updated", node_id, updated_by, changes=changes)

        return MutationResult(success=True, changes=changes)

    async def move_node(
        self,
        node_id: str,
        new_parent_id: str | None,
        updated_by: str,
        reason: str | None = None,
    ) -> MutationResult:
        """Re-parent a line or category."""
        node = await self._get_existing(node_id)

        if node["type"] == "portfolio":
            raise ValidationError("Portfolios cannot be moved - they must remain top-level")

        old_parent_id = node.get("parent_id")
        if old_parent_id == new_parent_id:
            raise ValidationError("Node is already in the specified location")

        if new_parent_id and await check_circular_reference(self._store, node_id, new_parent_id):
            raise ValidationError(CIRCULAR_REFERENCE)

        await validate_hierarchy_rules(self._store, node["type"], new_parent_id)

        now = utcnow()
        changes = {"parent_id": {"from": old_parent_id, "to": new_parent_id}}
        await self._apply(
            node,
            {"parent_id": new_parent_id},
            changes,
            updated_by,
            reason or "Node moved in hierarchy",
            now,
        )
        await self._touch_parent(old_parent_id, now)
        await self._touch_parent(new_parent_id, now)

        logger.info(
            "Taxonomy node moved",
            node_id=node_id,
            old_parent_id=old_parent_id,
            new_parent_id=new_parent_id,
            updated_by=updated_by,
        )
        record_hierarchy_event(
            "node_moved",
            node_id,
            updated_by,
            changes=changes,
            old_parent_id=old_parent_id,
            new_parent_id=new_parent_id,
        )
        return MutationResult(success=True, changes=changes)

    # =========================================================================
    # Activation
    # =========================================================================

    async def deactivate(
        self,
        node_id: str,
        updated_by: str,
        cascade_to_children: bool = False,
        reason: str | None = None,
    ) -> DeactivateResult:
        """Soft-delete a node, optionally cascading to its active descendants.

        Descendants are visited in store order. Inactive descendants are
        left untouched but still traversed, so active nodes below them
        are reached.
        """
        node = await self._get_existing(node_id)
        if not node.get("is_active", True):
            raise AlreadyInactiveError()

        now = utcnow()
        changes = {"is_active": {"from": True, "to": False}}
        await self._apply(
            node, {"is_active": False}, changes, updated_by, reason or "Node deactivated", now
        )
        deactivated_count = 1

        if cascade_to_children:
            visited = {node_id}
            pending = [node_id]
            while pending:
                parent_id = pending.pop(0)
                children = await (
                    self._store.query(NODES).with_index("by_parent", parent_id).collect()
                )
                for child in children:
                    if child["id"] in visited:
                        continue
                    visited.add(child["id"])
                    pending.append(child["id"])
                    if not child.get("is_active", True):
                        continue
                    await self._apply(
                        child,
                        {"is_active": False},
                        changes,
                        updated_by,
                        "Cascaded deactivation from parent",
                        now,
                    )
                    deactivated_count += 1

        logger.info(
            "Taxonomy node deactivated",
            node_id=node_id,
            updated_by=updated_by,
            cascade=cascade_to_children,
            deactivated_count=deactivated_count,
        )
        record_hierarchy_event(
            "node_updated",
            node_id,
            updated_by,
            changes=changes,
            deactivated_count=deactivated_count,
        )
        return DeactivateResult(success=True, deactivated_count=deactivated_count)

    async def reactivate(
        self,
        node_id: str,
        updated_by: str,
        reason: str | None = None,
    ) -> SuccessResult:
        """Undo a deactivation; the parent (if any) must be active."""
        node = await self._get_existing(node_id)
        if node.get("is_active", True):
            raise AlreadyActiveError()

        parent_id = node.get("parent_id")
        if parent_id:
            parent = await self._store.get(NODES, parent_id)
            if parent is None or not parent.get("is_active", True):
                raise ParentInactiveError()

        now = utcnow()
        changes = {"is_active": {"from": False, "to": True}}
        await self._apply(
            node, {"is_active": True}, changes, updated_by, reason or "Node reactivated", now
        )

        logger.info("Taxonomy node reactivated", node_id=node_id, updated_by=updated_by)
        record_hierarchy_event("node_updated", node_id, updated_by, changes=changes)
        return SuccessResult(success=True)

    # =========================================================================
    # Delete
    # =========================================================================

    async def _collect_descendants(self, node_id: str) -> list[str]:
        """Return descendant ids, parents before children (breadth-first)."""
        ordered: list[str] = []
        visited = {node_id}
        pending = [node_id]
        while pending:
            parent_id = pending.pop(0)
            children = await self._store.query(NODES).with_index("by_parent", parent_id).collect()
            for child in children:
                if child["id"] in visited:
                    continue
                visited.add(child["id"])
                ordered.append(child["id"])
                pending.append(child["id"])
        return ordered

    async def delete_node(
        self,
        node_id: str,
        updated_by: str,
        force_delete: bool = False,
    ) -> DeleteResult:
        """Hard-delete a node.

        Without ``force_delete`` the node must have no children. With it,
        the whole subtree is deleted, deepest nodes first.
        """
        node = await self._get_existing(node_id)

        if not force_delete:
            child = await self._store.query(NODES).with_index("by_parent", node_id).first()
            if child is not None:
                raise HasChildrenError()
            descendants: list[str] = []
        else:
            descendants = await self._collect_descendants(node_id)

        for descendant_id in reversed(descendants):
            await self._store.delete(NODES, descendant_id)
        await self._store.delete(NODES, node_id)

        parent_id = node.get("parent_id")
        await self._touch_parent(parent_id, utcnow())

        deleted_count = len(descendants) + 1
        logger.info(
            "Taxonomy node deleted",
            node_id=node_id,
            updated_by=updated_by,
            force=force_delete,
            deleted_count=deleted_count,
        )
        record_hierarchy_event(
            "node_deleted",
            node_id,
            updated_by,
            parent_id=parent_id,
            deleted_count=deleted_count,
        )
        return DeleteResult(success=True, deleted_count=deleted_count)
