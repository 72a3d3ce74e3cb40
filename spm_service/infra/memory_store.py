"""In-memory document store.

Used by the test suite (one fresh instance per test) and by the
``memory`` store backend for local development.
"""

import copy
import uuid

from spm_service.core.errors import NotFoundError
from spm_service.core.store import INDEXES, Document, DocumentQuery, DocumentStore
from spm_service.infra.logging import get_logger

logger = get_logger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store; documents are copied on the way in and out."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Document]] = {name: {} for name in INDEXES}

    def _table(self, table: str) -> dict[str, Document]:
        if table not in self._tables:
            raise ValueError(f"Unknown table '{table}'")
        return self._tables[table]

    async def get(self, table: str, doc_id: str) -> Document | None:
        document = self._table(table).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def insert(self, table: str, document: Document) -> str:
        doc_id = uuid.uuid4().hex
        stored = copy.deepcopy(document)
        stored["id"] = doc_id
        self._table(table)[doc_id] = stored
        logger.debug("Document inserted", table=table, doc_id=doc_id)
        return doc_id

    async def patch(self, table: str, doc_id: str, fields: Document) -> None:
        rows = self._table(table)
        if doc_id not in rows:
            raise NotFoundError(f"Document {doc_id} not found in {table}")
        update = copy.deepcopy(fields)
        update.pop("id", None)
        rows[doc_id].update(update)

    async def replace(self, table: str, doc_id: str, document: Document) -> None:
        rows = self._table(table)
        if doc_id not in rows:
            raise NotFoundError(f"Document {doc_id} not found in {table}")
        stored = copy.deepcopy(document)
        stored["id"] = doc_id
        rows[doc_id] = stored

    async def delete(self, table: str, doc_id: str) -> None:
        rows = self._table(table)
        if doc_id not in rows:
            raise NotFoundError(f"Document {doc_id} not found in {table}")
        del rows[doc_id]
        logger.debug("Document deleted", table=table, doc_id=doc_id)

    async def execute(self, query: DocumentQuery, limit: int | None = None) -> list[Document]:
        results = [doc for doc in self._table(query.table).values() if query.matches(doc)]

        if query.order_field is not None:
            results.sort(
                key=lambda doc: (doc.get(query.order_field) is None, doc.get(query.order_field)),
                reverse=query.descending,
            )

        if limit is not None:
            results = results[:limit]
        return [copy.deepcopy(doc) for doc in results]

    def __len__(self) -> int:
        return sum(len(rows) for rows in self._tables.values())
