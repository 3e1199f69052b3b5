"""
Per-key write serialization.

Conversation records are rewritten whole (read, append, write back), so two
requests for the same owner must not interleave. ``KeyedLock`` hands out one
``asyncio.Lock`` per ``(namespace, key)`` and forgets it once nobody holds or
waits for it. Serialization is process-local.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger("speechai.storage.locks")


class KeyedLock:
    """Registry of asyncio locks keyed by (namespace, key)."""

    def __init__(self):
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._users: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def hold(self, namespace: str, key: str) -> AsyncIterator[None]:
        """Hold the lock for (namespace, key) for the duration of the block."""
        lock_key = (namespace, key)
        lock = self._locks.setdefault(lock_key, asyncio.Lock())
        self._users[lock_key] = self._users.get(lock_key, 0) + 1
        try:
            if lock.locked():
                logger.debug("Waiting for %s/%s", namespace, key)
            async with lock:
                yield
        finally:
            self._users[lock_key] -= 1
            if self._users[lock_key] == 0:
                del self._users[lock_key]
                del self._locks[lock_key]

    def __len__(self) -> int:
        return len(self._locks)
