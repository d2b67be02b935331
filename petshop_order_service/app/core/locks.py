"""
Per-entity critical sections for the Order Service.

Stock of a single product and the state of a single order must be mutated
one writer at a time. Within a process this is an ``asyncio.Lock`` per key;
across processes the guarded stock UPDATE and the order version column back it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Iterable, List


class KeyedLockRegistry:
    """
    Asyncio locks, one per key, kept only while some task holds or awaits them.

    ``hold``/``hold_many`` count their users per key; when the last one leaves
    the lock is dropped, so finished orders do not pin memory.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        self._users[key] = self._users.get(key, 0) + 1
        return self.get(key)

    def _checkin(self, key: Hashable) -> None:
        remaining = self._users.get(key, 1) - 1
        if remaining > 0:
            self._users[key] = remaining
            return
        self._users.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            async with lock:
                yield
        finally:
            self._checkin(key)

    @asynccontextmanager
    async def hold_many(self, keys: Iterable[Hashable]) -> AsyncIterator[None]:
        """Acquire several locks in sorted key order so callers never deadlock"""
        ordered = sorted(set(keys))
        acquired: List[asyncio.Lock] = []
        for key in ordered:
            self._checkout(key)
        try:
            for key in ordered:
                lock = self.get(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)

    def holders(self, key: Hashable) -> int:
        """Number of tasks currently holding or waiting for ``key``"""
        return self._users.get(key, 0)

    def clear(self) -> None:
        """Forget every lock; only safe when none is held"""
        self._locks.clear()
        self._users.clear()

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registries shared by every request-scoped service instance
product_locks = KeyedLockRegistry()
order_locks = KeyedLockRegistry()
