"""
Schema migrations for the document store.

``NNN_name.sql`` files in this directory are applied in order, once each.
Every file runs in its own transaction together with its bookkeeping row,
and a transaction-scoped advisory lock keeps concurrent workers from
applying the same file twice.
"""

import logging
import re
from pathlib import Path

from ..database import DatabasePool

logger = logging.getLogger("speechai.storage.migrations")

MIGRATIONS_DIR = Path(__file__).parent
ADVISORY_LOCK_ID = 7_421_001

_VERSION = re.compile(r"^(\d+)_")

CREATE_LEDGER = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version    INTEGER PRIMARY KEY,
        name       TEXT NOT NULL,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


def migration_version(filename: str) -> int:
    """Leading number of a migration file name ('001_documents.sql' -> 1)."""
    match = _VERSION.match(filename)
    return int(match.group(1)) if match else 0


def migration_files() -> list[Path]:
    return sorted(MIGRATIONS_DIR.glob("*.sql"), key=lambda p: (migration_version(p.name), p.name))


async def run_migrations(pool: DatabasePool) -> int:
    """
    Apply pending migrations.

    Returns:
        Number of files applied by this call
    """
    await pool.execute(CREATE_LEDGER)
    applied = 0

    for path in migration_files():
        version = migration_version(path.name)
        async with pool.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1)", ADVISORY_LOCK_ID)
            done = await conn.fetchval("SELECT 1 FROM schema_migrations WHERE version = $1", version)
            if done:
                continue
            logger.info("Applying migration %s", path.name)
            await conn.execute(path.read_text())
            await conn.execute(
                "INSERT INTO schema_migrations (version, name) VALUES ($1, $2)",
                version,
                path.stem,
            )
        applied += 1

    if applied:
        logger.info("Applied %d migration(s)", applied)
    else:
        logger.debug("Schema up to date")
    return applied
