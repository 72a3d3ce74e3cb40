"""SQLAlchemy models backing the SQL document store.

Each table holds one document type; the store layer converts rows
to plain dict documents and back.
"""

from spm_service.models.base import Base, FlexJSON, TimestampMixin
from spm_service.models.product import ProductRecord
from spm_service.models.taxonomy_node import TaxonomyNodeRecord

__all__ = [
    "Base",
    "FlexJSON",
    "TimestampMixin",
    "ProductRecord",
    "TaxonomyNodeRecord",
]
