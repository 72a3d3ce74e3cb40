"""Shared pytest fixtures for the SPM service test suite.

Provides:
- store: a fresh InMemoryDocumentStore per test
- services bound to that store, plus a TreeBuilder for quick taxonomies
- db_engine / sql_store: in-memory SQLite engine for the SQL document store
- client: AsyncClient with the store dependency overridden
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spm_service.infra.memory_store import InMemoryDocumentStore
from spm_service.infra.sql_store import SqlDocumentStore
from spm_service.models import Base
from spm_service.schemas.taxonomy import NodeCreate
from spm_service.services.category_suggestion import CategorySuggester
from spm_service.services.product_service import ProductService
from spm_service.services.taxonomy_maintenance import TaxonomyMaintenance
from spm_service.services.taxonomy_mutations import TaxonomyMutations
from spm_service.services.taxonomy_queries import TaxonomyQueries


class TreeBuilder:
    """Creates nodes with valid defaults through the mutation service."""

    def __init__(self, mutations: TaxonomyMutations) -> None:
        self._mutations = mutations

    async def node(self, node_type: str, name: str, parent_id: str | None = None, **overrides) -> str:
        fields = {
            "name": name,
            "description": f"{name} description",
            "type": node_type,
            "parent_id": parent_id,
            "created_by": "tester",
        }
        fields.update(overrides)
        return await self._mutations.create(NodeCreate(**fields))

    async def portfolio(self, name: str = "Core", **overrides) -> str:
        return await self.node("portfolio", name, None, **overrides)

    async def line(self, parent_id: str, name: str = "Customer Apps", **overrides) -> str:
        return await self.node("line", name, parent_id, **overrides)

    async def category(self, parent_id: str, name: str = "Mobile Apps", **overrides) -> str:
        return await self.node("category", name, parent_id, **overrides)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory store, never shared between tests."""
    return InMemoryDocumentStore()


@pytest.fixture
def mutations(store: InMemoryDocumentStore) -> TaxonomyMutations:
    return TaxonomyMutations(store)


@pytest.fixture
def queries(store: InMemoryDocumentStore) -> TaxonomyQueries:
    return TaxonomyQueries(store)


@pytest.fixture
def maintenance(store: InMemoryDocumentStore) -> TaxonomyMaintenance:
    return TaxonomyMaintenance(store)


@pytest.fixture
def suggester(queries: TaxonomyQueries) -> CategorySuggester:
    return CategorySuggester(queries)


@pytest.fixture
def products(store: InMemoryDocumentStore) -> ProductService:
    return ProductService(store)


@pytest.fixture
def builder(mutations: TaxonomyMutations) -> TreeBuilder:
    return TreeBuilder(mutations)


@pytest.fixture
async def tree(builder: TreeBuilder) -> dict[str, str]:
    """Portfolio -> line -> category chain."""
    portfolio_id = await builder.portfolio("Core")
    line_id = await builder.line(portfolio_id, "Customer Apps")
    category_id = await builder.category(line_id, "Mobile Apps")
    return {"portfolio": portfolio_id, "line": line_id, "category": category_id}


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
def sql_store(db_session) -> SqlDocumentStore:
    return SqlDocumentStore(db_session)


@pytest.fixture
async def client(store: InMemoryDocumentStore):
    """AsyncClient with get_store overridden to use the test's in-memory store."""
    from spm_service.api.deps import get_store
    from spm_service.main import app

    async def _override_store():
        yield store

    app.dependency_overrides[get_store] = _override_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
