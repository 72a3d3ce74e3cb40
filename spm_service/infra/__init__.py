"""Infrastructure - Database, document stores, logging."""

from spm_service.infra.database import close_db_engine, get_db_session, init_models
from spm_service.infra.logging import get_logger, setup_logging
from spm_service.infra.memory_store import InMemoryDocumentStore
from spm_service.infra.sql_store import SqlDocumentStore

__all__ = [
    "get_db_session",
    "init_models",
    "close_db_engine",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "setup_logging",
    "get_logger",
]
