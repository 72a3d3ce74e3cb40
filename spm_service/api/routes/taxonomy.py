"""Taxonomy endpoints - node mutations, hierarchy queries and maintenance.

Domain errors raised by the services are turned into ErrorResponse
bodies by the application-level TaxonomyError handler.
"""

from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import PlainTextResponse

from spm_service.api.deps import Maintenance, Mutations, Queries, Suggester
from spm_service.core.errors import NotFoundError
from spm_service.schemas.maintenance import (
    BulkImportRequest,
    BulkImportResult,
    ConsistencyCheckRequest,
    ConsistencyCheckResult,
    CsvExport,
    ExportFormat,
    JsonExport,
    OrphanCleanupRequest,
    OrphanCleanupResult,
    SuggestionRequest,
    SuggestionResult,
    TreeMetrics,
)
from spm_service.schemas.taxonomy import (
    CategoryCreate,
    CircularReferenceResult,
    CreateResult,
    DeactivateRequest,
    DeactivateResult,
    DeleteResult,
    HierarchyNode,
    LineCreate,
    MoveRequest,
    MutationResult,
    NodeCreate,
    NodeType,
    NodeView,
    ParentChildCheck,
    PortfolioCreate,
    ReactivateRequest,
    StoredNode,
    SuccessResult,
    UpdateRequest,
)
from spm_service.services.taxonomy_maintenance import render_csv

router = APIRouter()

TypeFilter = Annotated[NodeType | None, Query(alias="type", description="Restrict to one node type")]
ActiveOnly = Annotated[bool, Query(description="Exclude inactive nodes")]


# =============================================================================
# Mutations
# =============================================================================


@router.post("/nodes", response_model=CreateResult, status_code=status.HTTP_201_CREATED)
async def create_node(request: NodeCreate, mutations: Mutations) -> CreateResult:
    """Create a node of any type."""
    node_id = await mutations.create(request)
    return CreateResult(node_id=node_id)


@router.post("/portfolios", response_model=CreateResult, status_code=status.HTTP_201_CREATED)
async def create_portfolio(request: PortfolioCreate, mutations: Mutations) -> CreateResult:
    node_id = await mutations.create_portfolio(request)
    return CreateResult(node_id=node_id)


@router.post("/lines", response_model=CreateResult, status_code=status.HTTP_201_CREATED)
async def create_line(request: LineCreate, mutations: Mutations) -> CreateResult:
    node_id = await mutations.create_line(request)
    return CreateResult(node_id=node_id)


@router.post("/categories", response_model=CreateResult, status_code=status.HTTP_201_CREATED)
async def create_category(request: CategoryCreate, mutations: Mutations) -> CreateResult:
    node_id = await mutations.create_category(request)
    return CreateResult(node_id=node_id)


@router.patch("/nodes/{node_id}", response_model=MutationResult)
async def update_node(node_id: str, request: UpdateRequest, mutations: Mutations) -> MutationResult:
    """Edit node fields; a changed parent_id is validated like a move."""
    return await mutations.update(node_id, request.updates, request.updated_by, request.reason)


@router.post("/nodes/{node_id}/move", response_model=MutationResult)
async def move_node(node_id: str, request: MoveRequest, mutations: Mutations) -> MutationResult:
    return await mutations.move_node(
        node_id, request.new_parent_id, request.updated_by, request.reason
    )


@router.post("/nodes/{node_id}/deactivate", response_model=DeactivateResult)
async def deactivate_node(
    node_id: str,
    request: DeactivateRequest,
    mutations: Mutations,
) -> DeactivateResult:
    return await mutations.deactivate(
        node_id, request.updated_by, request.cascade_to_children, request.reason
    )


@router.post("/nodes/{node_id}/reactivate", response_model=SuccessResult)
async def reactivate_node(
    node_id: str,
    request: ReactivateRequest,
    mutations: Mutations,
) -> SuccessResult:
    return await mutations.reactivate(node_id, request.updated_by, request.reason)


@router.delete("/nodes/{node_id}", response_model=DeleteResult)
async def delete_node(
    node_id: str,
    mutations: Mutations,
    updated_by: Annotated[str, Query(min_length=1, max_length=100)],
    force_delete: bool = False,
) -> DeleteResult:
    """Hard-delete a node; ``force_delete`` removes its whole subtree."""
    return await mutations.delete_node(node_id, updated_by, force_delete)


# =============================================================================
# Queries
# =============================================================================


@router.get("/hierarchy", response_model=list[HierarchyNode])
async def get_full_hierarchy(queries: Queries, active_only: ActiveOnly = True) -> list[HierarchyNode]:
    return await queries.get_full_hierarchy(active_only)


@router.get("/nodes/{node_id}", response_model=NodeView)
async def get_node(node_id: str, queries: Queries) -> StoredNode:
    node = await queries.get_by_id(node_id)
    if node is None:
        raise NotFoundError("Node not found")
    return node


@router.get("/nodes/{node_id}/breadcrumb", response_model=list[NodeView])
async def get_breadcrumb(node_id: str, queries: Queries) -> list[StoredNode]:
    """Path from the root down to the node; empty for an unknown id."""
    return await queries.get_breadcrumb(node_id)


@router.get("/nodes/{node_id}/children", response_model=list[NodeView])
async def get_children(
    node_id: str,
    queries: Queries,
    node_type: TypeFilter = None,
    active_only: ActiveOnly = True,
) -> list[StoredNode]:
    return await queries.get_children(node_id, node_type, active_only)


@router.get("/search", response_model=list[NodeView])
async def search_nodes(
    queries: Queries,
    term: Annotated[str, Query(min_length=1, max_length=100)],
    node_type: TypeFilter = None,
    active_only: ActiveOnly = True,
) -> list[StoredNode]:
    return await queries.search(term, node_type, active_only)


@router.get("/circular-reference", response_model=CircularReferenceResult)
async def check_circular_reference(
    queries: Queries,
    node_id: str,
    new_parent_id: str | None = None,
) -> CircularReferenceResult:
    return await queries.check_circular_reference(node_id, new_parent_id)


@router.get("/validate-parent-child", response_model=ParentChildCheck)
async def validate_parent_child(
    queries: Queries,
    child_type: NodeType,
    parent_id: str | None = None,
) -> ParentChildCheck:
    return await queries.validate_parent_child(parent_id, child_type)


@router.get("/portfolios", response_model=list[NodeView])
async def get_portfolios(queries: Queries, active_only: ActiveOnly = True) -> list[StoredNode]:
    return await queries.get_portfolios(active_only)


@router.get("/lines", response_model=list[NodeView])
async def get_lines(
    queries: Queries,
    portfolio_id: str | None = None,
    active_only: ActiveOnly = True,
) -> list[StoredNode]:
    return await queries.get_lines(portfolio_id, active_only)


@router.get("/categories", response_model=list[NodeView])
async def get_categories(
    queries: Queries,
    line_id: str | None = None,
    active_only: ActiveOnly = True,
) -> list[StoredNode]:
    return await queries.get_categories(line_id, active_only)


@router.get("/top-level", response_model=list[NodeView])
async def get_top_level(queries: Queries, active_only: ActiveOnly = True) -> list[StoredNode]:
    return await queries.get_top_level(active_only)


@router.get("/by-name", response_model=NodeView)
async def get_by_name(
    queries: Queries,
    name: Annotated[str, Query(min_length=1)],
    node_type: TypeFilter = None,
) -> StoredNode:
    node = await queries.get_by_name(name, node_type)
    if node is None:
        raise NotFoundError("Node not found")
    return node


@router.get("/by-creator/{created_by}", response_model=list[NodeView])
async def get_by_creator(
    created_by: str,
    queries: Queries,
    node_type: TypeFilter = None,
) -> list[StoredNode]:
    return await queries.get_by_creator(created_by, node_type)


@router.get("/recent", response_model=list[NodeView])
async def get_recently_updated(
    queries: Queries,
    hours_ago: Annotated[int | None, Query(ge=1)] = None,
    node_type: TypeFilter = None,
) -> list[StoredNode]:
    """Nodes modified within the last ``hours_ago`` hours, newest first."""
    return await queries.get_recently_updated(hours_ago, node_type)


# =============================================================================
# Maintenance
# =============================================================================


@router.post("/import", response_model=BulkImportResult)
async def bulk_import(request: BulkImportRequest, maintenance: Maintenance) -> BulkImportResult:
    """Create many nodes at once; per-item failures are reported, not raised."""
    return await maintenance.bulk_import(
        request.nodes, request.imported_by, request.validate_hierarchy
    )


@router.get("/export", response_model=None)
async def bulk_export(
    maintenance: Maintenance,
    export_format: Annotated[ExportFormat, Query(alias="format")] = "json",
    include_inactive: bool = False,
    type_filter: NodeType | None = None,
) -> JsonExport | PlainTextResponse:
    """Export the flattened hierarchy as JSON, or as a CSV document."""
    export = await maintenance.bulk_export(export_format, include_inactive, type_filter)
    if isinstance(export, CsvExport):
        return PlainTextResponse(
            render_csv(export),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="taxonomy.csv"'},
        )
    return export


@router.get("/metrics", response_model=TreeMetrics)
async def calculate_tree_metrics(
    maintenance: Maintenance,
    root_node_id: str | None = None,
) -> TreeMetrics:
    return await maintenance.calculate_tree_metrics(root_node_id)


@router.post("/consistency-check", response_model=ConsistencyCheckResult)
async def run_consistency_check(
    request: ConsistencyCheckRequest,
    maintenance: Maintenance,
) -> ConsistencyCheckResult:
    return await maintenance.run_consistency_check(
        request.check_type, request.triggered_by, request.scope
    )


@router.post("/cleanup-orphans", response_model=OrphanCleanupResult)
async def cleanup_orphaned_nodes(
    request: OrphanCleanupRequest,
    maintenance: Maintenance,
) -> OrphanCleanupResult:
    return await maintenance.cleanup_orphaned_nodes(request.updated_by, request.dry_run)


@router.post("/suggest-category", response_model=SuggestionResult)
async def suggest_category(request: SuggestionRequest, suggester: Suggester) -> SuggestionResult:
    """Rank active categories for a product description."""
    return await suggester.suggest(request.product_name, request.product_description)
