"""Schemas for bulk import/export, tree metrics, consistency checks and category suggestion."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from spm_service.schemas.taxonomy import ActorField, NodeType

# =============================================================================
# Bulk import
# =============================================================================


class BulkImportItem(BaseModel):
    """One node to import; the parent is referenced by name.

    Field rules are checked per item during the import so a single bad
    row does not reject the whole batch.
    """

    name: str = Field(description="Node name")
    description: str = Field(description="Node description")
    type: NodeType = Field(description="Node type")
    parent_name: str | None = Field(
        default=None,
        description="Name of the parent, created earlier in the batch or already stored",
    )
    strategy: str | None = Field(default=None)
    is_active: bool | None = Field(default=None)

    model_config = {"extra": "forbid"}


class BulkImportRequest(BaseModel):
    nodes: list[BulkImportItem] = Field(description="Nodes to create")
    imported_by: ActorField
    validate_hierarchy: bool = Field(
        default=True,
        description="Fail items whose parent_name cannot be resolved",
    )

    model_config = {"extra": "forbid"}


class BulkImportItemResult(BaseModel):
    success: bool
    name: str
    type: NodeType
    node_id: str | None = None
    error: str | None = None


class BulkImportResult(BaseModel):
    total_processed: int = Field(ge=0)
    success_count: int = Field(ge=0)
    error_count: int = Field(ge=0)
    results: list[BulkImportItemResult] = Field(default_factory=list)


# =============================================================================
# Bulk export
# =============================================================================

ExportFormat = Literal["json", "csv"]

EXPORT_CSV_HEADERS: tuple[str, ...] = (
    "Name",
    "Description",
    "Type",
    "Strategy",
    "Parent",
    "Hierarchy Path",
    "Is Active",
    "Created By",
    "Last Modified",
)


class ExportedNode(BaseModel):
    """Flattened node with its position in the tree."""

    id: str
    name: str
    description: str
    type: NodeType
    strategy: str | None = None
    parent_id: str | None = None
    is_active: bool
    version: int
    created_by: str
    updated_by: str
    last_modified: datetime
    hierarchy_path: str = Field(description="Names from the root, joined with ' > '")
    parent_name: str | None = Field(default=None, description="Name of the parent node")


class JsonExport(BaseModel):
    format: Literal["json"] = "json"
    data: list[ExportedNode] = Field(default_factory=list)
    count: int = Field(ge=0)


class CsvExport(BaseModel):
    format: Literal["csv"] = "csv"
    headers: list[str] = Field(default_factory=lambda: list(EXPORT_CSV_HEADERS))
    data: list[list[str]] = Field(default_factory=list)
    count: int = Field(ge=0)


# =============================================================================
# Tree metrics
# =============================================================================


class NodesByType(BaseModel):
    portfolio: int = 0
    line: int = 0
    category: int = 0


class TreeMetrics(BaseModel):
    total_nodes: int = Field(ge=0)
    active_nodes: int = Field(ge=0)
    inactive_nodes: int = Field(ge=0)
    nodes_by_type: NodesByType
    max_depth: int = Field(ge=0, description="Longest parent chain within the measured set")
    nodes_with_strategy: int = Field(ge=0)
    average_children_per_node: float = Field(
        ge=0, description="Mean child count over nodes that have at least one child"
    )
    orphaned_nodes: int = Field(ge=0, description="Nodes whose parent is outside the measured set")


# =============================================================================
# Consistency checks and orphan cleanup
# =============================================================================

CheckType = Literal["hierarchy_integrity", "circular_reference", "orphaned_nodes", "type_validation"]

IssueType = Literal[
    "missing_parent",
    "invalid_hierarchy",
    "circular_reference",
    "orphaned_node",
    "invalid_node_type",
    "invalid_parent_child_type",
]


class IntegrityIssue(BaseModel):
    type: IssueType
    node_id: str
    node_name: str | None = None
    node_type: str | None = None
    parent_type: str | None = None
    missing_parent_id: str | None = None
    invalid_type: str | None = None


class ConsistencyCheckRequest(BaseModel):
    check_type: CheckType
    triggered_by: ActorField
    scope: str = Field(default="all", description="A node id, or 'all'")

    model_config = {"extra": "forbid"}


class ConsistencyCheckResult(BaseModel):
    check_type: CheckType
    scope: str
    issue_count: int = Field(ge=0)
    issues: list[IntegrityIssue] = Field(default_factory=list)


class OrphanCleanupRequest(BaseModel):
    updated_by: ActorField
    dry_run: bool = False

    model_config = {"extra": "forbid"}


class OrphanedNode(BaseModel):
    id: str
    name: str
    type: str
    missing_parent_id: str


class OrphanCleanupResult(BaseModel):
    dry_run: bool
    orphaned_count: int = Field(ge=0)
    fixed_count: int = Field(default=0, ge=0)
    orphaned_nodes: list[OrphanedNode] = Field(default_factory=list)


# =============================================================================
# Category suggestion
# =============================================================================


class SuggestionRequest(BaseModel):
    product_name: str = Field(min_length=1, max_length=100)
    product_description: str | None = Field(default=None, max_length=1000)

    model_config = {"extra": "forbid"}


class CategorySuggestion(BaseModel):
    taxonomy_node_id: str
    portfolio: str
    line: str
    category: str
    confidence: float = Field(ge=0, le=1)
    reasoning: str
    path: str


class SuggestionResult(BaseModel):
    suggestions: list[CategorySuggestion] = Field(default_factory=list)
    total_categories: int = Field(ge=0)
    processing_time_ms: float = Field(ge=0)
