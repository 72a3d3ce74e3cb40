"""Document store interface consumed by the taxonomy and product services.

Documents are plain dicts keyed by field name; every stored document
carries the store-assigned ``id``. Queries are built fluently:

    children = await (
        store.query(NODES)
        .with_index("by_parent", parent_id)
        .filter(is_active=True)
        .collect()
    )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

Document = dict[str, Any]

NODES = "taxonomy_nodes"
PRODUCTS = "products"

# Index name -> indexed fields, per table
INDEXES: dict[str, dict[str, tuple[str, ...]]] = {
    NODES: {
        "by_parent": ("parent_id",),
        "by_type": ("type",),
        "by_parent_and_type": ("parent_id", "type"),
        "by_name": ("name",),
        "by_active": ("is_active",),
        "by_created_by": ("created_by",),
        "by_updated_by": ("updated_by",),
        "by_last_modified": ("last_modified",),
    },
    PRODUCTS: {
        "by_name": ("name",),
        "by_category": ("category",),
        "by_taxonomy_node": ("taxonomy_node_id",),
    },
}


@dataclass
class RangeCondition:
    """Inclusive bounds on a single field; a None bound is open."""

    field: str
    low: Any = None
    high: Any = None

    def matches(self, value: Any) -> bool:
        if value is None:
            return False
        if self.low is not None and value < self.low:
            return False
        if self.high is not None and value > self.high:
            return False
        return True


@dataclass
class DocumentQuery:
    """Accumulated query criteria, executed by the owning store."""

    store: DocumentStore
    table: str
    index: str | None = None
    equals: dict[str, Any] = field(default_factory=dict)
    ranges: list[RangeCondition] = field(default_factory=list)
    order_field: str | None = None
    descending: bool = False

    def with_index(self, name: str, *values: Any) -> DocumentQuery:
        """Restrict to documents whose indexed fields equal ``values``.

        Values may cover a prefix of the index fields. An index with no
        values only fixes the ordering field.
        """
        table_indexes = INDEXES.get(self.table, {})
        if name not in table_indexes:
            raise ValueError(f"Index '{name}' not defined for table '{self.table}'")

        fields = table_indexes[name]
        if len(values) > len(fields):
            raise ValueError(f"Index '{name}' covers {len(fields)} field(s), got {len(values)} value(s)")

        self.index = name
        for field_name, value in zip(fields, values):
            self.equals[field_name] = value
        if not values:
            self.order_field = fields[0]
        return self

    def filter(self, **conditions: Any) -> DocumentQuery:
        """Add equality conditions."""
        self.equals.update(conditions)
        return self

    def between(self, field_name: str, low: Any = None, high: Any = None) -> DocumentQuery:
        """Add inclusive range bounds on a field."""
        self.ranges.append(RangeCondition(field_name, low, high))
        return self

    def order(self, direction: str = "asc") -> DocumentQuery:
        """Order by the index field (or id when no index ordering applies)."""
        if direction not in ("asc", "desc"):
            raise ValueError("direction must be 'asc' or 'desc'")
        self.descending = direction == "desc"
        if self.order_field is None:
            self.order_field = "id"
        return self

    def matches(self, document: Document) -> bool:
        """Evaluate the criteria against a document in memory."""
        for key, expected in self.equals.items():
            if document.get(key) != expected:
                return False
        return all(cond.matches(document.get(cond.field)) for cond in self.ranges)

    async def collect(self) -> list[Document]:
        return await self.store.execute(self)

    async def first(self) -> Document | None:
        results = await self.store.execute(self, limit=1)
        return results[0] if results else None


class DocumentStore(ABC):
    """Abstract document store.

    Each call is atomic for the document(s) it touches; there is no
    transaction spanning several calls.
    """

    @abstractmethod
    async def get(self, table: str, doc_id: str) -> Document | None:
        """Return the document with ``doc_id`` or None."""

    @abstractmethod
    async def insert(self, table: str, document: Document) -> str:
        """Insert a document and return its new id."""

    @abstractmethod
    async def patch(self, table: str, doc_id: str, fields: Document) -> None:
        """Shallow-merge ``fields`` into an existing document."""

    @abstractmethod
    async def replace(self, table: str, doc_id: str, document: Document) -> None:
        """Replace every field of an existing document (id is kept)."""

    @abstractmethod
    async def delete(self, table: str, doc_id: str) -> None:
        """Delete a document."""

    @abstractmethod
    async def execute(self, query: DocumentQuery, limit: int | None = None) -> list[Document]:
        """Run a query built with :meth:`query`."""

    async def ping(self) -> bool:
        """Readiness probe."""
        return True

    def query(self, table: str) -> DocumentQuery:
        if table not in INDEXES:
            raise ValueError(f"Unknown table '{table}'")
        return DocumentQuery(store=self, table=table)
