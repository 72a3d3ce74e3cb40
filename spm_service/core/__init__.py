"""Core module - store interface, hierarchy rules, change history, domain errors."""

from spm_service.core.errors import (
    AlreadyActiveError,
    AlreadyInactiveError,
    HasChildrenError,
    NoChangesError,
    NotFoundError,
    ParentInactiveError,
    TaxonomyError,
    ValidationError,
)
from spm_service.core.store import NODES, PRODUCTS, Document, DocumentQuery, DocumentStore

__all__ = [
    "AlreadyActiveError",
    "AlreadyInactiveError",
    "HasChildrenError",
    "NoChangesError",
    "NotFoundError",
    "ParentInactiveError",
    "TaxonomyError",
    "ValidationError",
    "NODES",
    "PRODUCTS",
    "Document",
    "DocumentQuery",
    "DocumentStore",
]
