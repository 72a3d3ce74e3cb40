"""Taxonomy node schemas.

A node is a closed tagged union keyed on ``type``: portfolios carry
``parent_id=None`` by construction, lines and categories require one.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationInfo, field_validator

NodeType = Literal["portfolio", "line", "category"]
NODE_TYPES: tuple[str, ...] = ("portfolio", "line", "category")

NameField = Annotated[str, Field(min_length=2, max_length=100, description="Display name")]
DescriptionField = Annotated[
    str, Field(min_length=10, max_length=1000, description="What the node covers")
]
StrategyField = Annotated[
    str | None,
    Field(min_length=5, max_length=2000, description="Optional strategy statement"),
]
ActorField = Annotated[str, Field(min_length=1, max_length=100, description="Actor identifier")]


class ChangeHistoryEntry(BaseModel):
    """One audit entry; ``changes`` maps field -> {"from": old, "to": new}."""

    timestamp: datetime = Field(description="When the change was applied")
    updated_by: str = Field(description="Actor that applied the change")
    changes: dict[str, Any] = Field(description="Changed fields")
    reason: str | None = Field(default=None, description="Free-text reason")


class _StoredNode(BaseModel):
    id: str = Field(description="Store-assigned identifier")
    name: NameField
    description: DescriptionField
    strategy: StrategyField = None
    is_active: bool = Field(default=True)
    version: int = Field(default=1, ge=1)
    change_history: list[ChangeHistoryEntry] = Field(default_factory=list)
    created_by: str
    updated_by: str
    last_modified: datetime

    model_config = {"extra": "ignore"}


class PortfolioNode(_StoredNode):
    """Top-level node; never has a parent."""

    type: Literal["portfolio"] = "portfolio"
    parent_id: None = None


class LineNode(_StoredNode):
    """Product line; parent is a portfolio."""

    type: Literal["line"] = "line"
    parent_id: str


class CategoryNode(_StoredNode):
    """Category; parent is a product line."""

    type: Literal["category"] = "category"
    parent_id: str


TaxonomyNode = Annotated[
    Union[PortfolioNode, LineNode, CategoryNode],
    Field(discriminator="type"),
]

_node_adapter: TypeAdapter[TaxonomyNode] = TypeAdapter(TaxonomyNode)


def parse_node(document: dict[str, Any]) -> PortfolioNode | LineNode | CategoryNode:
    """Validate a stored document into its node variant."""
    return _node_adapter.validate_python(document)


class NodeView(BaseModel):
    """Read model for a stored node that no longer fits its variant.

    Stored data can drift from the write rules (a portfolio left with a
    dangling parent_id, an unknown type) and reads still return it.
    """

    id: str
    name: str
    description: str
    type: str
    strategy: str | None = None
    parent_id: str | None = None
    is_active: bool = True
    version: int = 1
    created_by: str
    updated_by: str
    last_modified: datetime
    change_history: list[ChangeHistoryEntry] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


StoredNode = Union[PortfolioNode, LineNode, CategoryNode, NodeView]


class HierarchyNode(NodeView):
    """Node with its nested children, as returned by the full hierarchy query."""

    children: list[HierarchyNode] = Field(default_factory=list)


# =============================================================================
# Create requests
# =============================================================================


class _CreateBase(BaseModel):
    name: NameField
    description: DescriptionField
    strategy: StrategyField = None
    is_active: bool = Field(default=True)
    created_by: ActorField
    updated_by: str | None = Field(
        default=None,
        max_length=100,
        description="Defaults to created_by",
    )

    model_config = {"extra": "forbid"}


class NodeCreate(_CreateBase):
    """Generic create; hierarchy rules are checked against ``type``."""

    type: NodeType
    parent_id: str | None = None


class PortfolioCreate(_CreateBase):
    """Create a top-level portfolio."""

    parent_id: None = None


class LineCreate(_CreateBase):
    """Create a product line under a portfolio."""

    parent_id: str = Field(min_length=1)


class CategoryCreate(_CreateBase):
    """Create a category under a product line."""

    parent_id: str = Field(min_length=1)


# =============================================================================
# Mutation requests
# =============================================================================


class NodeUpdate(BaseModel):
    """Partial field edit. Only fields explicitly set are applied.

    ``type`` is immutable and ``is_active`` changes go through
    deactivate/reactivate, so neither is accepted here.
    """

    name: NameField | None = None
    description: DescriptionField | None = None
    strategy: StrategyField = None
    parent_id: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("name", "description")
    @classmethod
    def reject_null(cls, v: str | None, info: ValidationInfo) -> str:
        """name and description may be changed but never cleared."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class UpdateRequest(BaseModel):
    updates: NodeUpdate
    updated_by: ActorField
    reason: str | None = Field(default=None, max_length=500)

    model_config = {"extra": "forbid"}


class MoveRequest(BaseModel):
    new_parent_id: str | None
    updated_by: ActorField
    reason: str | None = Field(default=None, max_length=500)

    model_config = {"extra": "forbid"}


class DeactivateRequest(BaseModel):
    updated_by: ActorField
    cascade_to_children: bool = False
    reason: str | None = Field(default=None, max_length=500)

    model_config = {"extra": "forbid"}


class ReactivateRequest(BaseModel):
    updated_by: ActorField
    reason: str | None = Field(default=None, max_length=500)

    model_config = {"extra": "forbid"}


# =============================================================================
# Results
# =============================================================================


class CreateResult(BaseModel):
    success: bool = True
    node_id: str


class MutationResult(BaseModel):
    success: bool = True
    changes: dict[str, Any] = Field(default_factory=dict)


class DeactivateResult(BaseModel):
    success: bool = True
    deactivated_count: int = Field(ge=1)


class DeleteResult(BaseModel):
    success: bool = True
    deleted_count: int = Field(ge=1)


class SuccessResult(BaseModel):
    success: bool = True


class CircularReferenceResult(BaseModel):
    has_circular_reference: bool


class ParentChildCheck(BaseModel):
    valid: bool
    reason: str | None = None
