"""
Storage module for SpeechAI Brain.

Provides persistent storage for:
- Registered users
- Single-user and multi-user conversation history
- The guest id counter
"""

from .config import DatabaseConfig, db_settings
from .database import DatabasePool, close_database, get_db_pool, init_database
from .documents import (
    DocumentStore,
    InMemoryDocumentStore,
    PostgresDocumentStore,
    get_document_store,
    set_document_store,
)
from .exceptions import (
    StorageError,
    DatabaseUnavailableError,
    DatabaseOperationError,
    ValidationError,
    UnauthorizedError,
    PermissionDeniedError,
    NotFoundError,
    UserNotFoundError,
    ConversationNotFoundError,
    ConflictError,
)

__all__ = [
    "DatabaseConfig",
    "db_settings",
    "DatabasePool",
    "get_db_pool",
    "init_database",
    "close_database",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
    "get_document_store",
    "set_document_store",
    "StorageError",
    "DatabaseUnavailableError",
    "DatabaseOperationError",
    "ValidationError",
    "UnauthorizedError",
    "PermissionDeniedError",
    "NotFoundError",
    "UserNotFoundError",
    "ConversationNotFoundError",
    "ConflictError",
]
