"""SQL-backed document store on async SQLAlchemy.

Each document table maps to one ORM model. Rows are converted to plain
dict documents so the services never see ORM objects.
"""

import uuid
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from spm_service.core.errors import NotFoundError
from spm_service.core.store import NODES, PRODUCTS, Document, DocumentQuery, DocumentStore
from spm_service.infra.logging import get_logger
from spm_service.models import Base, ProductRecord, TaxonomyNodeRecord

logger = get_logger(__name__)

TABLE_MODELS: dict[str, type[Base]] = {
    NODES: TaxonomyNodeRecord,
    PRODUCTS: ProductRecord,
}

# Columns holding nested structures that must be JSON-serialisable
JSON_FIELDS: dict[str, tuple[str, ...]] = {
    NODES: ("change_history",),
    PRODUCTS: (),
}

# Bookkeeping columns that are not part of the document
_MIXIN_COLUMNS = frozenset({"created_at", "updated_at"})


class SqlDocumentStore(DocumentStore):
    """Document store bound to a single AsyncSession.

    Writes are flushed immediately and the session owner decides when to
    commit (see ``get_db_session``). With ``commit_each_write`` every
    write is committed on its own, so a multi-step operation that fails
    part way keeps the writes it already made, as the in-memory store does.
    """

    def __init__(self, session: AsyncSession, commit_each_write: bool = False) -> None:
        self._session = session
        self._commit_each_write = commit_each_write

    def _model(self, table: str) -> type[Base]:
        if table not in TABLE_MODELS:
            raise ValueError(f"Unknown table '{table}'")
        return TABLE_MODELS[table]

    def _document_fields(self, table: str) -> list[str]:
        model = self._model(table)
        return [c.name for c in model.__table__.columns if c.name not in _MIXIN_COLUMNS]

    def _to_document(self, table: str, row: Any) -> Document:
        return {name: getattr(row, name) for name in self._document_fields(table)}

    def _to_columns(self, table: str, fields: Document) -> dict[str, Any]:
        allowed = set(self._document_fields(table))
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown field(s) for {table}: {sorted(unknown)}")

        values = dict(fields)
        for name in JSON_FIELDS[table]:
            if name in values:
                values[name] = to_jsonable_python(values[name])
        return values

    async def _persist(self) -> None:
        if self._commit_each_write:
            await self._session.commit()
        else:
            await self._session.flush()

    async def _load(self, table: str, doc_id: str) -> Any:
        row = await self._session.get(self._model(table), doc_id)
        if row is None:
            raise NotFoundError(f"Document {doc_id} not found in {table}")
        return row

    async def get(self, table: str, doc_id: str) -> Document | None:
        row = await self._session.get(self._model(table), doc_id)
        return self._to_document(table, row) if row is not None else None

    async def insert(self, table: str, document: Document) -> str:
        doc_id = uuid.uuid4().hex
        values = self._to_columns(table, {k: v for k, v in document.items() if k != "id"})
        row = self._model(table)(id=doc_id, **values)
        self._session.add(row)
        await self._persist()
        logger.debug("Document inserted", table=table, doc_id=doc_id)
        return doc_id

    async def patch(self, table: str, doc_id: str, fields: Document) -> None:
        row = await self._load(table, doc_id)
        values = self._to_columns(table, {k: v for k, v in fields.items() if k != "id"})
        for name, value in values.items():
            setattr(row, name, value)
        await self._persist()

    async def replace(self, table: str, doc_id: str, document: Document) -> None:
        row = await self._load(table, doc_id)
        values = self._to_columns(table, {k: v for k, v in document.items() if k != "id"})
        for name in self._document_fields(table):
            if name != "id":
                setattr(row, name, values.get(name))
        await self._persist()

    async def delete(self, table: str, doc_id: str) -> None:
        row = await self._load(table, doc_id)
        await self._session.delete(row)
        await self._persist()
        logger.debug("Document deleted", table=table, doc_id=doc_id)

    async def execute(self, query: DocumentQuery, limit: int | None = None) -> list[Document]:
        model = self._model(query.table)
        stmt = select(model)

        for name, value in query.equals.items():
            column = getattr(model, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)

        for cond in query.ranges:
            column = getattr(model, cond.field)
            stmt = stmt.where(column.is_not(None))
            if cond.low is not None:
                stmt = stmt.where(column >= cond.low)
            if cond.high is not None:
                stmt = stmt.where(column <= cond.high)

        if query.order_field is not None:
            column = getattr(model, query.order_field)
            stmt = stmt.order_by(column.desc() if query.descending else column.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return [self._to_document(query.table, row) for row in result.scalars().all()]

    async def ping(self) -> bool:
        try:
            await self._session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Store ping failed", error=str(e))
            return False
