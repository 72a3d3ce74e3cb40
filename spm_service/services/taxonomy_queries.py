"""Taxonomy queries - read-only traversals and lookups."""

from datetime import timedelta

from pydantic import ValidationError as SchemaValidationError

from spm_service.config import settings
from spm_service.core.hierarchy import check_circular_reference, evaluate_hierarchy_rules
from spm_service.core.history import utcnow
from spm_service.core.store import NODES, Document, DocumentQuery, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.schemas.taxonomy import (
    CircularReferenceResult,
    HierarchyNode,
    NodeType,
    NodeView,
    ParentChildCheck,
    StoredNode,
    parse_node,
)

logger = get_logger(__name__)


def read_node(document: Document) -> StoredNode:
    """Validate a stored document, falling back to NodeView when it breaks the variant rules."""
    try:
        return parse_node(document)
    except SchemaValidationError as e:
        logger.warning(
            "Stored node does not match its type",
            node_id=document.get("id"),
            node_type=document.get("type"),
            error_count=e.error_count(),
        )
        return NodeView.model_validate(document)


class TaxonomyQueries:
    """Read operations on taxonomy nodes."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def _collect(self, query: DocumentQuery) -> list[StoredNode]:
        return [read_node(doc) for doc in await query.collect()]

    # =========================================================================
    # Type-specific listings
    # =========================================================================

    async def get_portfolios(self, active_only: bool = True) -> list[StoredNode]:
        query = self._store.query(NODES).with_index("by_type", "portfolio")
        if active_only:
            query = query.filter(is_active=True)
        return await self._collect(query)

    async def get_lines(
        self,
        portfolio_id: str | None = None,
        active_only: bool = True,
    ) -> list[StoredNode]:
        query = self._store.query(NODES).with_index("by_type", "line")
        if portfolio_id:
            query = query.filter(parent_id=portfolio_id)
        if active_only:
            query = query.filter(is_active=True)
        return await self._collect(query)

    async def get_categories(
        self,
        line_id: str | None = None,
        active_only: bool = True,
    ) -> list[StoredNode]:
        query = self._store.query(NODES).with_index("by_type", "category")
        if line_id:
            query = query.filter(parent_id=line_id)
        if active_only:
            query = query.filter(is_active=True)
        return await self._collect(query)

    # =========================================================================
    # Hierarchy traversal
    # =========================================================================

    async def get_children(
        self,
        parent_id: str,
        node_type: NodeType | None = None,
        active_only: bool = True,
    ) -> list[StoredNode]:
        if node_type:
            query = self._store.query(NODES).with_index("by_parent_and_type", parent_id, node_type)
        else:
            query = self._store.query(NODES).with_index("by_parent", parent_id)
        if active_only:
            query = query.filter(is_active=True)
        return await self._collect(query)

    async def get_top_level(self, active_only: bool = True) -> list[StoredNode]:
        query = self._store.query(NODES).with_index("by_parent_and_type", None, "portfolio")
        if active_only:
            query = query.filter(is_active=True)
        return await self._collect(query)

    async def get_breadcrumb(self, node_id: str) -> list[StoredNode]:
        """Return the path from the root down to ``node_id``.

        The walk ends at the first node without a parent, or silently at
        a missing node when the chain is broken.
        """
        breadcrumb: list[Document] = []
        visited: set[str] = set()
        current_id: str | None = node_id

        while current_id and current_id not in visited:
            if len(visited) >= settings.max_hierarchy_depth:
                logger.warning("Breadcrumb walk hit iteration cap", node_id=node_id)
                break

            node = await self._store.get(NODES, current_id)
            if node is None:
                break

            visited.add(current_id)
            breadcrumb.insert(0, node)
            current_id = node.get("parent_id")

        return [read_node(doc) for doc in breadcrumb]

    async def get_full_hierarchy(self, active_only: bool = True) -> list[HierarchyNode]:
        """Assemble the whole forest in one pass over the nodes.

        A node becomes a root when it has no parent or its parent is not
        among the fetched nodes (inactive when ``active_only``, or missing).
        """
        query = self._store.query(NODES)
        if active_only:
            query = query.filter(is_active=True)
        documents = await query.collect()

        nodes = {doc["id"]: HierarchyNode.model_validate({**doc, "children": []}) for doc in documents}
        roots: list[HierarchyNode] = []

        for doc in documents:
            node = nodes[doc["id"]]
            parent_id = doc.get("parent_id")
            if parent_id and parent_id in nodes and parent_id != doc["id"]:
                nodes[parent_id].children.append(node)
            else:
                roots.append(node)

        logger.debug("Hierarchy assembled", nodes=len(nodes), roots=len(roots))
        return roots

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_by_id(self, node_id: str) -> StoredNode | None:
        document = await self._store.get(NODES, node_id)
        return read_node(document) if document else None

    async def get_by_name(self, name: str, node_type: NodeType | None = None) -> StoredNode | None:
        query = self._store.query(NODES).with_index("by_name", name)
        if node_type:
            query = query.filter(type=node_type)
        document = await query.first()
        return read_node(document) if document else None

    async def search(
        self,
        term: str,
        node_type: NodeType | None = None,
        active_only: bool = True,
    ) -> list[StoredNode]:
        """Case-insensitive substring match on name and description."""
        query = self._store.query(NODES)
        if node_type:
            query = query.filter(type=node_type)
        if active_only:
            query = query.filter(is_active=True)

        needle = term.lower()
        results = [
            doc
            for doc in await query.collect()
            if needle in doc.get("name", "").lower()
            or needle in (doc.get("description") or "").lower()
        ]
        return [read_node(doc) for doc in results]

    # =========================================================================
    # Audit-aware queries
    # =========================================================================

    async def get_by_creator(
        self,
        created_by: str,
        node_type: NodeType | None = None,
    ) -> list[StoredNode]:
        query = self._store.query(NODES).with_index("by_created_by", created_by)
        if node_type:
            query = query.filter(type=node_type)
        return await self._collect(query)

    async def get_recently_updated(
        self,
        hours_ago: int | None = None,
        node_type: NodeType | None = None,
    ) -> list[StoredNode]:
        """Nodes modified within the window, newest first."""
        window = hours_ago if hours_ago is not None else settings.recently_updated_hours
        cutoff = utcnow() - timedelta(hours=window)

        query = (
            self._store.query(NODES)
            .with_index("by_last_modified")
            .between("last_modified", low=cutoff)
        )
        if node_type:
            query = query.filter(type=node_type)
        return await self._collect(query.order("desc"))

    # =========================================================================
    # Pre-flight validation
    # =========================================================================

    async def validate_parent_child(
        self,
        parent_id: str | None,
        child_type: NodeType,
    ) -> ParentChildCheck:
        return await evaluate_hierarchy_rules(self._store, child_type, parent_id)

    async def check_circular_reference(
        self,
        node_id: str,
        new_parent_id: str | None,
    ) -> CircularReferenceResult:
        has_cycle = await check_circular_reference(self._store, node_id, new_parent_id)
        return CircularReferenceResult(has_circular_reference=has_cycle)
