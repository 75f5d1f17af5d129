"""
In-process advisory locks keyed by string.

One asyncio.Lock per key: invoice creation and the rollover of one
enrollment share a key and never wait on another enrollment.
"""
import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator

from domain.interfaces import LockPort


class KeyedLock(LockPort):
    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            # Drop idle locks so the registry does not grow with every enrollment
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


# Shared by every request handled in this process
invoice_locks = KeyedLock()
