"""Keyed asyncio locks

Serializes work on one key (a customer, a plant month) inside one process
only. Work that must also be exclusive across processes (the API and the
workers) relies on the database: the conditional allocation claim on
monthly_generations, the unique indexes, and SELECT FOR UPDATE row locks
on PostgreSQL (a no-op on SQLite).
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class KeyedLockRegistry:
    """Hands out one asyncio.Lock per key and forgets idle keys"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                self._waiters.pop(key, None)
                self._locks.pop(key, None)

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


def customer_lock_key(customer_id: str) -> str:
    return f"customer:{customer_id}"


def plant_month_lock_key(plant_id: int, month: str) -> str:
    return f"plant:{plant_id}:{month}"


# Process-wide registry shared by use cases and workers
ledger_locks = KeyedLockRegistry()
