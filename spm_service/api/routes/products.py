"""Product catalogue endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query, status

from spm_service.api.deps import Products
from spm_service.core.errors import NotFoundError
from spm_service.schemas.product import (
    BulkCategoryUpdate,
    BulkCategoryUpdateResult,
    PriceUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
)
from spm_service.schemas.taxonomy import SuccessResult

router = APIRouter()


@router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
async def create_product(request: ProductCreate, products: Products) -> Product:
    product_id = await products.create(request)
    return Product(id=product_id, **request.model_dump())


@router.get("", response_model=list[Product])
async def list_products(products: Products) -> list[Product]:
    return await products.get_all()


# Fixed paths must stay above /{product_id}


@router.get("/search", response_model=list[Product])
async def search_products(
    products: Products,
    term: Annotated[str, Query(min_length=1, max_length=100)],
) -> list[Product]:
    """Case-insensitive substring match on name, description and category."""
    return await products.search(term)


@router.get("/price-range", response_model=list[Product])
async def get_in_price_range(
    products: Products,
    min_price: Annotated[float, Query(ge=0)],
    max_price: Annotated[float, Query(ge=0)],
) -> list[Product]:
    return await products.get_in_price_range(min_price, max_price)


@router.get("/by-category/{category}", response_model=list[Product])
async def get_by_category(category: str, products: Products) -> list[Product]:
    return await products.get_by_category(category)


@router.post("/bulk-update-category", response_model=BulkCategoryUpdateResult)
async def bulk_update_category(
    request: BulkCategoryUpdate,
    products: Products,
) -> BulkCategoryUpdateResult:
    """Rename a category label on every product carrying it."""
    return await products.bulk_update_category(request.old_category, request.new_category)


@router.get("/{product_id}", response_model=Product)
async def get_product(product_id: str, products: Products) -> Product:
    product = await products.get_by_id(product_id)
    if product is None:
        raise NotFoundError(f"Product with id {product_id} not found")
    return product


@router.patch("/{product_id}", response_model=Product)
async def update_product(product_id: str, request: ProductUpdate, products: Products) -> Product:
    return await products.update_by_id(product_id, request)


@router.put("/{product_id}", response_model=Product)
async def replace_product(product_id: str, request: ProductCreate, products: Products) -> Product:
    return await products.replace_by_id(product_id, request)


@router.delete("/{product_id}", response_model=SuccessResult)
async def delete_product(product_id: str, products: Products) -> SuccessResult:
    await products.delete_by_id(product_id)
    return SuccessResult()


@router.patch("/{product_id}/price", response_model=Product)
async def update_price(product_id: str, request: PriceUpdate, products: Products) -> Product:
    return await products.update_price(product_id, request.price)
