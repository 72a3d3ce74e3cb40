"""Pydantic schemas for request/response validation."""

from spm_service.schemas.common import ErrorResponse, HealthResponse
from spm_service.schemas.maintenance import (
    BulkImportRequest,
    BulkImportResult,
    ConsistencyCheckRequest,
    ConsistencyCheckResult,
    CsvExport,
    JsonExport,
    OrphanCleanupRequest,
    OrphanCleanupResult,
    SuggestionRequest,
    SuggestionResult,
    TreeMetrics,
)
from spm_service.schemas.product import (
    BulkCategoryUpdate,
    BulkCategoryUpdateResult,
    PriceUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)
from spm_service.schemas.taxonomy import (
    CategoryNode,
    HierarchyNode,
    LineNode,
    NodeCreate,
    NodeUpdate,
    NodeView,
    PortfolioNode,
    StoredNode,
    TaxonomyNode,
    parse_node,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "BulkImportRequest",
    "BulkImportResult",
    "ConsistencyCheckRequest",
    "ConsistencyCheckResult",
    "CsvExport",
    "JsonExport",
    "OrphanCleanupRequest",
    "OrphanCleanupResult",
    "SuggestionRequest",
    "SuggestionResult",
    "TreeMetrics",
    "BulkCategoryUpdate",
    "BulkCategoryUpdateResult",
    "PriceUpdate",
    "Product",
    "ProductCreate",
    "ProductUpdate",
    "CategoryNode",
    "HierarchyNode",
    "LineNode",
    "NodeCreate",
    "NodeUpdate",
    "NodeView",
    "PortfolioNode",
    "StoredNode",
    "TaxonomyNode",
    "parse_node",
]
