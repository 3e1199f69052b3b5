"""
Hierarchical document store.

Documents are JSON objects addressed by slash-separated paths such as
``Conversations/{userId}/{conversationId}``. The store supports whole-document
reads and writes, shallow merges, ordered child listing, equality queries on a
child field and an atomic counter.

Two backends implement the ``DocumentStore`` protocol:

- ``PostgresDocumentStore`` - one ``documents`` row per path (asyncpg).
- ``InMemoryDocumentStore`` - process-local dict, used for tests and
  ``SPEECHAI_DB_BACKEND=memory``.

Reads return deep copies: callers modify a snapshot and write it back.
"""

import asyncio
import copy
import itertools
import json
import logging
from typing import Any, Optional, Protocol, runtime_checkable
from uuid import uuid4

from .config import db_settings
from .database import DatabasePool, get_db_pool
from .exceptions import ValidationError

logger = logging.getLogger("speechai.storage.documents")

Document = dict[str, Any]


def join_path(*segments: str) -> str:
    """Build a document path, rejecting empty or slash-containing segments."""
    for segment in segments:
        if not segment or "/" in segment:
            raise ValidationError(f"Invalid identifier: {segment!r}")
    return "/".join(segments)


def parent_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def last_segment(path: str) -> str:
    return path.rsplit("/", 1)[-1]


@runtime_checkable
class DocumentStore(Protocol):
    """Key-path addressable store with ordered-child queries."""

    def new_key(self) -> str:
        """Generate a unique child key."""
        ...

    async def get(self, path: str) -> Optional[Document]:
        """Return the document at *path* or None."""
        ...

    async def set(self, path: str, value: Document) -> None:
        """Create or replace the document at *path*."""
        ...

    async def update(self, path: str, fields: Document) -> bool:
        """Shallow-merge *fields* into an existing document. False if missing."""
        ...

    async def delete(self, path: str) -> bool:
        """Delete the document at *path* and everything beneath it."""
        ...

    async def children(self, path: str) -> list[tuple[str, Document]]:
        """Direct child documents as (key, value), oldest first."""
        ...

    async def scan(self, prefix: str) -> list[tuple[str, Document]]:
        """All documents beneath *prefix* as (full path, value), oldest first."""
        ...

    async def find(self, parent: str, field: str, value: str) -> list[tuple[str, Document]]:
        """Direct children of *parent* whose *field* equals *value*."""
        ...

    async def increment(self, path: str, field: str, seed: int = 0) -> int:
        """Atomically add one to *field* (starting from *seed*) and return it."""
        ...


class InMemoryDocumentStore:
    """Process-local document store."""

    def __init__(self):
        self._docs: dict[str, tuple[int, Document]] = {}
        self._seq = itertools.count()
        self._counter_lock = asyncio.Lock()

    def new_key(self) -> str:
        return uuid4().hex

    async def get(self, path: str) -> Optional[Document]:
        entry = self._docs.get(path)
        return copy.deepcopy(entry[1]) if entry else None

    async def set(self, path: str, value: Document) -> None:
        seq = self._docs[path][0] if path in self._docs else next(self._seq)
        self._docs[path] = (seq, copy.deepcopy(value))

    async def update(self, path: str, fields: Document) -> bool:
        entry = self._docs.get(path)
        if entry is None:
            return False
        entry[1].update(copy.deepcopy(fields))
        return True

    async def delete(self, path: str) -> bool:
        doomed = [p for p in self._docs if p == path or p.startswith(path + "/")]
        for p in doomed:
            del self._docs[p]
        return bool(doomed)

    def _ordered(self, predicate) -> list[tuple[str, Document]]:
        matches = [(seq, p, doc) for p, (seq, doc) in self._docs.items() if predicate(p)]
        matches.sort(key=lambda m: m[0])
        return [(p, copy.deepcopy(doc)) for _, p, doc in matches]

    async def children(self, path: str) -> list[tuple[str, Document]]:
        return [
            (last_segment(p), doc)
            for p, doc in self._ordered(lambda p: parent_of(p) == path)
        ]

    async def scan(self, prefix: str) -> list[tuple[str, Document]]:
        return self._ordered(lambda p: p.startswith(prefix + "/"))

    async def find(self, parent: str, field: str, value: str) -> list[tuple[str, Document]]:
        return [
            (key, doc)
            for key, doc in await self.children(parent)
            if doc.get(field) == value
        ]

    async def increment(self, path: str, field: str, seed: int = 0) -> int:
        async with self._counter_lock:
            doc = await self.get(path) or {}
            current = doc.get(field)
            doc[field] = (seed if current is None else int(current)) + 1
            await self.set(path, doc)
            return doc[field]


class PostgresDocumentStore:
    """Document store backed by the ``documents`` table."""

    def __init__(self, pool: Optional[DatabasePool] = None):
        self._pool = pool

    @property
    def pool(self) -> DatabasePool:
        return self._pool or get_db_pool()

    def new_key(self) -> str:
        return uuid4().hex

    @staticmethod
    def _load(raw: Any) -> Document:
        return json.loads(raw) if isinstance(raw, str) else dict(raw)

    async def get(self, path: str) -> Optional[Document]:
        raw = await self.pool.fetchval("SELECT value FROM documents WHERE path = $1", path)
        return self._load(raw) if raw is not None else None

    async def set(self, path: str, value: Document) -> None:
        await self.pool.execute(
            """
            INSERT INTO documents (path, parent, value)
            VALUES ($1, $2, $3::jsonb)
            ON CONFLICT (path)
            DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
            """,
            path,
            parent_of(path),
            json.dumps(value),
        )

    async def update(self, path: str, fields: Document) -> bool:
        result = await self.pool.execute(
            """
            UPDATE documents
            SET value = value || $2::jsonb, updated_at = NOW()
            WHERE path = $1
            """,
            path,
            json.dumps(fields),
        )
        return result == "UPDATE 1"

    async def delete(self, path: str) -> bool:
        result = await self.pool.execute(
            """
            DELETE FROM documents
            WHERE path = $1 OR left(path, length($2)) = $2
            """,
            path,
            path + "/",
        )
        # Result is like "DELETE 3"
        return bool(result) and int(result.split()[-1]) > 0

    async def children(self, path: str) -> list[tuple[str, Document]]:
        rows = await self.pool.fetch(
            "SELECT path, value FROM documents WHERE parent = $1 ORDER BY seq",
            path,
        )
        return [(last_segment(row["path"]), self._load(row["value"])) for row in rows]

    async def scan(self, prefix: str) -> list[tuple[str, Document]]:
        rows = await self.pool.fetch(
            """
            SELECT path, value FROM documents
            WHERE left(path, length($1)) = $1
            ORDER BY seq
            """,
            prefix + "/",
        )
        return [(row["path"], self._load(row["value"])) for row in rows]

    async def find(self, parent: str, field: str, value: str) -> list[tuple[str, Document]]:
        rows = await self.pool.fetch(
            """
            SELECT path, value FROM documents
            WHERE parent = $1 AND value->>$2 = $3
            ORDER BY seq
            """,
            parent,
            field,
            value,
        )
        return [(last_segment(row["path"]), self._load(row["value"])) for row in rows]

    async def increment(self, path: str, field: str, seed: int = 0) -> int:
        return await self.pool.fetchval(
            """
            INSERT INTO documents (path, parent, value)
            VALUES ($1, $2, jsonb_build_object($3::text, $4::bigint + 1))
            ON CONFLICT (path) DO UPDATE
            SET value = jsonb_set(
                    documents.value,
                    ARRAY[$3::text],
                    to_jsonb(COALESCE((documents.value->>$3)::bigint, $4::bigint) + 1)
                ),
                updated_at = NOW()
            RETURNING (value->>$3)::bigint
            """,
            path,
            parent_of(path),
            field,
            seed,
        )


# Global store instance
_document_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get the global document store for the configured backend."""
    global _document_store
    if _document_store is None:
        if db_settings.backend == "memory":
            logger.warning("Using in-memory document store; data is lost on restart")
            _document_store = InMemoryDocumentStore()
        else:
            _document_store = PostgresDocumentStore()
    return _document_store


def set_document_store(store: Optional[DocumentStore]) -> None:
    """Replace the global store (None resets to the configured backend)."""
    global _document_store
    _document_store = store
