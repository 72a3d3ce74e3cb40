"""FastAPI dependencies for dependency injection.

Provides:
- Document store (SQL session per request, or the process-wide in-memory store)
- Taxonomy and product services bound to that store
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends

from spm_service.config import settings
from spm_service.core.store import DocumentStore
from spm_service.infra.database import get_db_session
from spm_service.infra.logging import get_logger
from spm_service.infra.memory_store import InMemoryDocumentStore
from spm_service.infra.sql_store import SqlDocumentStore
from spm_service.services.category_suggestion import CategorySuggester
from spm_service.services.product_service import ProductService
from spm_service.services.taxonomy_maintenance import TaxonomyMaintenance
from spm_service.services.taxonomy_mutations import TaxonomyMutations
from spm_service.services.taxonomy_queries import TaxonomyQueries

logger = get_logger(__name__)

# Process-wide store for the memory backend (initialized on first use)
_memory_store: InMemoryDocumentStore | None = None


def get_memory_store() -> InMemoryDocumentStore:
    """Get or create the in-memory document store."""
    global _memory_store

    if _memory_store is None:
        logger.info("Creating in-memory document store")
        _memory_store = InMemoryDocumentStore()

    return _memory_store


async def get_store() -> AsyncGenerator[DocumentStore, None]:
    """Get the document store for this request.

    With the SQL backend every request gets its own session and each
    store write is committed as it happens, so an operation that fails
    part way (a cascade hitting a conflict) keeps its earlier writes.

    Yields:
        DocumentStore
    """
    if settings.store_backend == "memory":
        yield get_memory_store()
        return

    async with get_db_session() as session:
        yield SqlDocumentStore(session, commit_each_write=True)


Store = Annotated[DocumentStore, Depends(get_store)]


async def get_mutations(store: Store) -> TaxonomyMutations:
    return TaxonomyMutations(store)


async def get_queries(store: Store) -> TaxonomyQueries:
    return TaxonomyQueries(store)


async def get_maintenance(store: Store) -> TaxonomyMaintenance:
    return TaxonomyMaintenance(store)


async def get_suggester(store: Store) -> CategorySuggester:
    return CategorySuggester(TaxonomyQueries(store))


async def get_products(store: Store) -> ProductService:
    return ProductService(store)


# Type aliases for cleaner annotations
Mutations = Annotated[TaxonomyMutations, Depends(get_mutations)]
Queries = Annotated[TaxonomyQueries, Depends(get_queries)]
Maintenance = Annotated[TaxonomyMaintenance, Depends(get_maintenance)]
Suggester = Annotated[CategorySuggester, Depends(get_suggester)]
Products = Annotated[ProductService, Depends(get_products)]
