"""
Per-User Locks

Keyed asyncio locks that serialize read-modify-write cycles on a single
user's progress record inside one process.

Features:
- One lock per key, created on first use
- Entries are dropped as soon as nobody holds or waits on them
- Unrelated keys never contend
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict


@dataclass
class _LockEntry:
    """A lock plus the number of tasks holding or waiting for it."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLockRegistry:
    """
    Registry of asyncio locks keyed by an arbitrary string.

    Cross-process safety is provided by the database (row lock and version
    column); this registry only avoids pointless retries between tasks of
    the same worker.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Args:
            key: Lock key (typically a user id).
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry

        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_locked(self, key: str) -> bool:
        """Check whether a key is currently held."""
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)


# Global registry for progress records
progress_locks = KeyedLockRegistry()
