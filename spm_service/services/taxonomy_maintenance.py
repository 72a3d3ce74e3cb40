"""Taxonomy maintenance - bulk import/export, tree metrics, integrity checks, orphan cleanup.

Integrity checks and cleanup read raw store documents rather than
validated node models, since their whole purpose is to find documents
that break the hierarchy rules.
"""

import csv
import io

import pydantic

from spm_service.core.errors import NotFoundError, TaxonomyError, ValidationError
from spm_service.core.hierarchy import check_circular_reference, is_valid_parent_type
from spm_service.core.store import NODES, Document, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.schemas.maintenance import (
    BulkImportItem,
    BulkImportItemResult,
    BulkImportResult,
    CheckType,
    ConsistencyCheckResult,
    CsvExport,
    ExportedNode,
    ExportFormat,
    IntegrityIssue,
    JsonExport,
    NodesByType,
    OrphanCleanupResult,
    OrphanedNode,
    TreeMetrics,
)
from spm_service.schemas.taxonomy import NODE_TYPES, HierarchyNode, NodeCreate, NodeType, NodeUpdate
from spm_service.services.taxonomy_mutations import TaxonomyMutations
from spm_service.services.taxonomy_queries import TaxonomyQueries

logger = get_logger(__name__)

_TYPE_ORDER = {"portfolio": 0, "line": 1, "category": 2}


def _validation_message(error: pydantic.ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def render_csv(export: CsvExport) -> str:
    """Render a CSV export as text, header row first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(export.headers)
    writer.writerows(export.data)
    return buffer.getvalue()


class TaxonomyMaintenance:
    """Batch and housekeeping operations over the whole taxonomy."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._mutations = TaxonomyMutations(store)
        self._queries = TaxonomyQueries(store)

    async def _all_documents(self) -> list[Document]:
        return await self._store.query(NODES).collect()

    async def _scoped_documents(self, scope: str) -> list[Document]:
        if scope == "all":
            return await self._all_documents()
        document = await self._store.get(NODES, scope)
        return [document] if document else []

    # =========================================================================
    # Bulk import / export
    # =========================================================================

    async def bulk_import(
        self,
        items: list[BulkImportItem],
        imported_by: str,
        validate_hierarchy: bool = True,
    ) -> BulkImportResult:
        """Create many nodes, parents first.

        Items are processed portfolio -> line -> category. ``parent_name``
        resolves against nodes created earlier in this batch, then against
        the store. Each failure is recorded on its item and the import
        carries on.
        """
        results: list[BulkImportItemResult] = []
        created: dict[str, str] = {}

        for item in sorted(items, key=lambda i: _TYPE_ORDER[i.type]):
            try:
                parent_id: str | None = None

                if item.type == "portfolio":
                    if item.parent_name:
                        raise ValidationError(
                            f"Portfolio '{item.name}' cannot have a parent - portfolios must be top-level"
                        )
                else:
                    if not item.parent_name:
                        raise ValidationError(f"{item.type} '{item.name}' must have a parent")

                    if item.parent_name in created:
                        parent_id = created[item.parent_name]
                    else:
                        parent = await self._queries.get_by_name(item.parent_name)
                        if parent is not None:
                            parent_id = parent.id
                        elif validate_hierarchy:
                            raise ValidationError(f"Parent '{item.parent_name}' not found")

                request = NodeCreate(
                    name=item.name,
                    description=item.description,
                    type=item.type,
                    parent_id=parent_id,
                    strategy=item.strategy,
                    is_active=True if item.is_active is None else item.is_active,
                    created_by=imported_by,
                    updated_by=imported_by,
                )
                node_id = await self._mutations.create(request)

            except TaxonomyError as e:
                results.append(
                    BulkImportItemResult(success=False, name=item.name, type=item.type, error=e.message)
                )
                continue
            except pydantic.ValidationError as e:
                results.append(
                    BulkImportItemResult(
                        success=False, name=item.name, type=item.type, error=_validation_message(e)
                    )
                )
                continue

            created[item.name] = node_id
            results.append(
                BulkImportItemResult(success=True, name=item.name, type=item.type, node_id=node_id)
            )

        success_count = sum(1 for r in results if r.success)
        error_count = len(results) - success_count

        logger.info(
            "Bulk import finished",
            imported_by=imported_by,
            total=len(results),
            success_count=success_count,
            error_count=error_count,
        )
        return BulkImportResult(
            total_processed=len(results),
            success_count=success_count,
            error_count=error_count,
            results=results,
        )

    async def bulk_export(
        self,
        export_format: ExportFormat = "json",
        include_inactive: bool = False,
        type_filter: NodeType | None = None,
    ) -> JsonExport | CsvExport:
        """Flatten the hierarchy, annotating each node with its path."""
        hierarchy = await self._queries.get_full_hierarchy(active_only=not include_inactive)
        flattened: list[ExportedNode] = []

        def flatten(nodes: list[HierarchyNode], parent_path: str) -> None:
            for node in nodes:
                path = f"{parent_path} > {node.name}" if parent_path else node.name
                if type_filter is None or node.type == type_filter:
                    flattened.append(
                        ExportedNode(
                            **node.model_dump(exclude={"children", "change_history"}),
                            hierarchy_path=path,
                            parent_name=parent_path.split(" > ")[-1] if parent_path else None,
                        )
                    )
                flatten(node.children, path)

        flatten(hierarchy, "")

        logger.info(
            "Bulk export finished",
            format=export_format,
            include_inactive=include_inactive,
            type_filter=type_filter,
            count=len(flattened),
        )

        if export_format == "csv":
            rows = [
                [
                    node.name,
                    node.description,
                    node.type,
                    node.strategy or "",
                    node.parent_name or "",
                    node.hierarchy_path,
                    "true" if node.is_active else "false",
                    node.created_by,
                    node.last_modified.isoformat(),
                ]
                for node in flattened
            ]
            return CsvExport(data=rows, count=len(rows))

        return JsonExport(data=flattened, count=len(flattened))

    # =========================================================================
    # Tree metrics
    # =========================================================================

    async def _subtree_documents(self, root: Document) -> list[Document]:
        nodes = [root]
        visited = {root["id"]}
        pending = [root["id"]]
        while pending:
            parent_id = pending.pop(0)
            for child in await self._store.query(NODES).with_index("by_parent", parent_id).collect():
                if child["id"] in visited:
                    continue
                visited.add(child["id"])
                nodes.append(child)
                pending.append(child["id"])
        return nodes

    async def calculate_tree_metrics(self, root_node_id: str | None = None) -> TreeMetrics:
        """Summary statistics over the whole taxonomy or one subtree.

        Inactive nodes are included; ``orphaned_nodes`` counts nodes whose
        parent is not part of the measured set.
        """
        if root_node_id:
            root = await self._store.get(NODES, root_node_id)
            if root is None:
                raise NotFoundError("Root node not found")
            nodes = await self._subtree_documents(root)
        else:
            nodes = await self._all_documents()

        by_id = {node["id"]: node for node in nodes}

        child_counts: dict[str, int] = {}
        for node in nodes:
            parent_id = node.get("parent_id")
            if parent_id in by_id:
                child_counts[parent_id] = child_counts.get(parent_id, 0) + 1

        max_depth = 0
        for node in nodes:
            depth = 0
            seen = {node["id"]}
            parent_id = node.get("parent_id")
            while parent_id in by_id and parent_id not in seen:
                depth += 1
                seen.add(parent_id)
                parent_id = by_id[parent_id].get("parent_id")
            max_depth = max(max_depth, depth)

        by_type = NodesByType(
            portfolio=sum(1 for n in nodes if n.get("type") == "portfolio"),
            line=sum(1 for n in nodes if n.get("type") == "line"),
            category=sum(1 for n in nodes if n.get("type") == "category"),
        )
        active = sum(1 for n in nodes if n.get("is_active", True))

        return TreeMetrics(
            total_nodes=len(nodes),
            active_nodes=active,
            inactive_nodes=len(nodes) - active,
            nodes_by_type=by_type,
            max_depth=max_depth,
            nodes_with_strategy=sum(1 for n in nodes if n.get("strategy")),
            average_children_per_node=(
                sum(child_counts.values()) / len(child_counts) if child_counts else 0.0
            ),
            orphaned_nodes=sum(
                1 for n in nodes if n.get("parent_id") and n["parent_id"] not in by_id
            ),
        )

    # =========================================================================
    # Consistency checks
    # =========================================================================

    async def _check_hierarchy_integrity(self, nodes: list[Document]) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []
        for node in nodes:
            parent_id = node.get("parent_id")
            if not parent_id:
                continue
            parent = await self._store.get(NODES, parent_id)
            if parent is None:
                issues.append(
                    IntegrityIssue(
                        type="missing_parent",
                        node_id=node["id"],
                        node_name=node.get("name"),
                        missing_parent_id=parent_id,
                    )
                )
            elif not is_valid_parent_type(node.get("type", ""), parent.get("type", "")):
                issues.append(
                    IntegrityIssue(
                        type="invalid_hierarchy",
                        node_id=node["id"],
                        node_name=node.get("name"),
                        node_type=node.get("type"),
                        parent_type=parent.get("type"),
                    )
                )
        return issues

    async def _check_circular_references(self, nodes: list[Document]) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []
        for node in nodes:
            if await check_circular_reference(self._store, node["id"], node.get("parent_id")):
                issues.append(
                    IntegrityIssue(type="circular_reference", node_id=node["id"], node_name=node.get("name"))
                )
        return issues

    async def _check_orphaned_nodes(self) -> list[IntegrityIssue]:
        nodes = await self._all_documents()
        ids = {node["id"] for node in nodes}
        return [
            IntegrityIssue(
                type="orphaned_node",
                node_id=node["id"],
                node_name=node.get("name"),
                node_type=node.get("type"),
                missing_parent_id=node["parent_id"],
            )
            for node in nodes
            if node.get("parent_id") and node["parent_id"] not in ids
        ]

    async def _check_type_validation(self, nodes: list[Document]) -> list[IntegrityIssue]:
        issues: list[IntegrityIssue] = []
        for node in nodes:
            node_type = node.get("type")
            if node_type not in NODE_TYPES:
                issues.append(
                    IntegrityIssue(
                        type="invalid_node_type",
                        node_id=node["id"],
                        node_name=node.get("name"),
                        invalid_type=str(node_type),
                    )
                )

            parent_id = node.get("parent_id")
            if not parent_id:
                continue
            parent = await self._store.get(NODES, parent_id)
            if parent is not None and not is_valid_parent_type(str(node_type), parent.get("type", "")):
                issues.append(
                    IntegrityIssue(
                        type="invalid_parent_child_type",
                        node_id=node["id"],
                        node_name=node.get("name"),
                        node_type=node_type,
                        parent_type=parent.get("type"),
                    )
                )
        return issues

    async def run_consistency_check(
        self,
        check_type: CheckType,
        triggered_by: str,
        scope: str = "all",
    ) -> ConsistencyCheckResult:
        """Scan stored nodes for one class of integrity problem.

        ``scope`` is a node id or ``"all"``; the orphan check always scans
        every node. An unknown node id yields no issues.
        """
        logger.info(
            "Consistency check started",
            check_type=check_type,
            triggered_by=triggered_by,
            scope=scope,
        )

        if check_type == "orphaned_nodes":
            issues = await self._check_orphaned_nodes()
        else:
            nodes = await self._scoped_documents(scope)
            if check_type == "hierarchy_integrity":
                issues = await self._check_hierarchy_integrity(nodes)
            elif check_type == "circular_reference":
                issues = await self._check_circular_references(nodes)
            else:
                issues = await self._check_type_validation(nodes)

        if issues:
            logger.warning(
                "Consistency issues found",
                check_type=check_type,
                scope=scope,
                issue_count=len(issues),
                node_ids=[issue.node_id for issue in issues],
            )

        return ConsistencyCheckResult(
            check_type=check_type,
            scope=scope,
            issue_count=len(issues),
            issues=issues,
        )

    # =========================================================================
    # Orphan cleanup
    # =========================================================================

    async def cleanup_orphaned_nodes(self, updated_by: str, dry_run: bool = False) -> OrphanCleanupResult:
        """Repair nodes whose parent no longer exists.

        Orphaned lines and categories are force-deleted with their
        subtrees. An orphaned portfolio only loses its parent reference.
        """
        nodes = await self._all_documents()
        ids = {node["id"] for node in nodes}
        orphans = [node for node in nodes if node.get("parent_id") and node["parent_id"] not in ids]

        listing = [
            OrphanedNode(
                id=node["id"],
                name=node.get("name", ""),
                type=str(node.get("type")),
                missing_parent_id=node["parent_id"],
            )
            for node in orphans
        ]

        if dry_run:
            return OrphanCleanupResult(dry_run=True, orphaned_count=len(orphans), orphaned_nodes=listing)

        fixed_count = 0
        for orphan in orphans:
            if await self._store.get(NODES, orphan["id"]) is None:
                continue
            if orphan.get("type") == "portfolio":
                await self._mutations.update(
                    orphan["id"],
                    NodeUpdate(parent_id=None),
                    updated_by,
                    reason="Fixed orphaned portfolio by removing parent reference",
                )
            else:
                await self._mutations.delete_node(orphan["id"], updated_by, force_delete=True)
            fixed_count += 1

        logger.info(
            "Orphan cleanup finished",
            updated_by=updated_by,
            orphaned_count=len(orphans),
            fixed_count=fixed_count,
        )
        return OrphanCleanupResult(
            dry_run=False,
            orphaned_count=len(orphans),
            fixed_count=fixed_count,
            orphaned_nodes=listing,
        )
