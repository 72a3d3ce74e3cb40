"""Product catalogue schemas."""

from typing import Literal

from pydantic import BaseModel, Field

Modernity = Literal["Migrate", "Hold", "Continue", "Adopt", "Assess"]
BusinessCriticality = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
LifecycleStage = Literal["PLAN", "BUILD", "RUN", "RETIRE"]


class ProductBase(BaseModel):
    """Fields shared by product create, replace and read models."""

    name: str = Field(min_length=2, max_length=100, description="Product name")
    description: str | None = Field(default=None, max_length=500)
    price: float | None = Field(default=None, ge=0, description="List price")
    category: str | None = Field(
        default=None,
        min_length=2,
        max_length=100,
        description="Free-text category label",
    )
    taxonomy_node_id: str | None = Field(
        default=None,
        description="Category node the product is classified under",
    )
    product_owner: str | None = Field(default=None, min_length=1, max_length=100)
    product_type: str | None = Field(default=None, min_length=1, max_length=100)
    lifecycle_status: str | None = Field(default=None, min_length=1, max_length=100)
    modernity: Modernity | None = None
    business_criticality: BusinessCriticality | None = None
    lifecycle_stage: LifecycleStage | None = None


class ProductCreate(ProductBase):
    """Request body for creating or fully replacing a product."""

    model_config = {"extra": "forbid"}


class ProductUpdate(BaseModel):
    """Partial product edit; only fields explicitly set are applied."""

    name: str | None = Field(default=None, min_length=2, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: float | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, min_length=2, max_length=100)
    taxonomy_node_id: str | None = None
    product_owner: str | None = Field(default=None, min_length=1, max_length=100)
    product_type: str | None = Field(default=None, min_length=1, max_length=100)
    lifecycle_status: str | None = Field(default=None, min_length=1, max_length=100)
    modernity: Modernity | None = None
    business_criticality: BusinessCriticality | None = None
    lifecycle_stage: LifecycleStage | None = None

    model_config = {"extra": "forbid"}


class Product(ProductBase):
    """Stored product."""

    id: str = Field(description="Store-assigned identifier")

    model_config = {"extra": "ignore"}


class PriceUpdate(BaseModel):
    price: float = Field(ge=0, description="New price, must be non-negative")

    model_config = {"extra": "forbid"}


class BulkCategoryUpdate(BaseModel):
    old_category: str = Field(min_length=1, max_length=100)
    new_category: str = Field(min_length=1, max_length=100)

    model_config = {"extra": "forbid"}


class BulkCategoryUpdateResult(BaseModel):
    updated: int = Field(ge=0)
    message: str
