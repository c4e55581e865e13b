"""Keyed in-memory locks for per-record serialization.

Used by:
- SessionStore (mutations of one chat are serialized per ``chat_id``)
- KeyRegistry / SessionStore (revoke vs. session creation per key prefix)

Note: these locks only work within a single process. Across processes the
per-operation database transaction is the only guarantee.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Hashable


class KeyedLocks:
    """A registry of ``asyncio.Lock`` objects, one per key.

    A lock lives only while some task holds or waits for it, so the registry
    does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Acquire the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        """Number of keys currently held or awaited."""
        return len(self._locks)


class LockRegistry:
    """Per-chat and per-prefix lock namespaces owned by one engine."""

    def __init__(self) -> None:
        self.chats = KeyedLocks()
        self.prefixes = KeyedLocks()
