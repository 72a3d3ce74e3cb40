"""Product catalogue - flat CRUD and filtered queries over products."""

from typing import Any

from spm_service.core.errors import NotFoundError, ValidationError
from spm_service.core.store import NODES, PRODUCTS, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.schemas.product import (
    BulkCategoryUpdateResult,
    Product,
    ProductCreate,
    ProductUpdate,
)

logger = get_logger(__name__)


class ProductService:
    """CRUD and queries on products."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def _require(self, product_id: str) -> dict[str, Any]:
        product = await self._store.get(PRODUCTS, product_id)
        if product is None:
            raise NotFoundError(f"Product with id {product_id} not found")
        return product

    async def _check_taxonomy_node(self, node_id: str | None) -> None:
        if node_id is None:
            return
        node = await self._store.get(NODES, node_id)
        if node is None or node.get("type") != "category":
            raise ValidationError("taxonomy_node_id must reference an existing category node")

    # =========================================================================
    # Commands
    # =========================================================================

    async def create(self, data: ProductCreate) -> str:
        await self._check_taxonomy_node(data.taxonomy_node_id)
        product_id = await self._store.insert(PRODUCTS, data.model_dump())
        logger.info("Product created", product_id=product_id, name=data.name)
        return product_id

    async def update_by_id(self, product_id: str, updates: ProductUpdate) -> Product:
        """Apply the fields explicitly set on ``updates``."""
        await self._require(product_id)
        fields = updates.model_dump(exclude_unset=True)
        if "taxonomy_node_id" in fields:
            await self._check_taxonomy_node(fields["taxonomy_node_id"])

        await self._store.patch(PRODUCTS, product_id, fields)
        logger.info("Product updated", product_id=product_id, changed_fields=sorted(fields))
        return Product.model_validate(await self._require(product_id))

    async def replace_by_id(self, product_id: str, data: ProductCreate) -> Product:
        """Overwrite every field; omitted optional fields are cleared."""
        await self._require(product_id)
        await self._check_taxonomy_node(data.taxonomy_node_id)

        await self._store.replace(PRODUCTS, product_id, data.model_dump())
        logger.info("Product replaced", product_id=product_id)
        return Product.model_validate(await self._require(product_id))

    async def delete_by_id(self, product_id: str) -> None:
        await self._require(product_id)
        await self._store.delete(PRODUCTS, product_id)
        logger.info("Product deleted", product_id=product_id)

    async def update_price(self, product_id: str, price: float) -> Product:
        if price < 0:
            raise ValidationError("Price must be non-negative")
        await self._require(product_id)

        await self._store.patch(PRODUCTS, product_id, {"price": price})
        logger.info("Product price updated", product_id=product_id, price=price)
        return Product.model_validate(await self._require(product_id))

    async def bulk_update_category(self, old_category: str, new_category: str) -> BulkCategoryUpdateResult:
        products = await self._store.query(PRODUCTS).with_index("by_category", old_category).collect()
        if not products:
            return BulkCategoryUpdateResult(
                updated=0,
                message=f"No products found with category '{old_category}'",
            )

        for product in products:
            await self._store.patch(PRODUCTS, product["id"], {"category": new_category})

        logger.info(
            "Product category renamed",
            old_category=old_category,
            new_category=new_category,
            updated=len(products),
        )
        return BulkCategoryUpdateResult(
            updated=len(products),
            message=f"Updated {len(products)} products from '{old_category}' to '{new_category}'",
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_all(self) -> list[Product]:
        return [Product.model_validate(doc) for doc in await self._store.query(PRODUCTS).collect()]

    async def get_by_id(self, product_id: str) -> Product | None:
        document = await self._store.get(PRODUCTS, product_id)
        return Product.model_validate(document) if document else None

    async def get_by_category(self, category: str) -> list[Product]:
        documents = await self._store.query(PRODUCTS).with_index("by_category", category).collect()
        return [Product.model_validate(doc) for doc in documents]

    async def get_in_price_range(self, min_price: float, max_price: float) -> list[Product]:
        """Products priced within ``[min_price, max_price]``; unpriced products are excluded."""
        if min_price > max_price:
            raise ValidationError("Minimum price cannot be greater than maximum price")

        documents = await self._store.query(PRODUCTS).between("price", min_price, max_price).collect()
        return [Product.model_validate(doc) for doc in documents]

    async def search(self, term: str) -> list[Product]:
        """Case-insensitive substring match on name, description and category."""
        needle = term.lower()
        documents = await self._store.query(PRODUCTS).collect()
        return [
            Product.model_validate(doc)
            for doc in documents
            if any(needle in (doc.get(field) or "").lower() for field in ("name", "description", "category"))
        ]
