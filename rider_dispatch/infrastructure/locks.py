"""
Per-entity locking.

Every state-mutating operation serialises on the keys it touches
(``order:<id>``, then ``rider:<id>``).  Two interchangeable backends:

* ``LocalKeyedLock``  -- one ``asyncio.Lock`` per key, single process.
* ``RedisKeyedLock``  -- ``DistributedLock`` per key, many processes.

Both give up after ``wait_seconds`` and raise ``LockUnavailable`` so no
caller blocks indefinitely.

``DistributedLock`` uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack, asynccontextmanager, nullcontext
from typing import AsyncIterator, Callable, Optional

import redis.asyncio as aioredis

from rider_dispatch.domain.errors import LockUnavailable


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: float = 0,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def acquire_within(
        self, wait_seconds: float, retry_interval: float = 0.02
    ) -> bool:
        """Poll ``acquire`` until it succeeds or *wait_seconds* elapse."""
        deadline = time.monotonic() + wait_seconds
        while True:
            if await self.acquire():
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(retry_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire_within(self.wait_seconds)
        if not acquired:
            raise LockUnavailable(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


class KeyedLock(ABC):
    """Mutual exclusion scoped to a string key."""

    def __init__(self, wait_seconds: float = 2.0):
        self.wait_seconds = wait_seconds

    @abstractmethod
    def hold(self, key: str):
        """Async context manager holding *key*; raises ``LockUnavailable``."""

    def hold_id(self, key_for: Callable[[int], str], entity_id: Optional[int]):
        """Hold ``key_for(entity_id)``; a no-op when no explicit id is given."""
        if entity_id is None:
            return nullcontext()
        return self.hold(key_for(entity_id))

    @asynccontextmanager
    async def hold_all(self, *keys: str) -> AsyncIterator[None]:
        """Hold several keys, acquired in the order given."""
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self.hold(key))
            yield


class LocalKeyedLock(KeyedLock):
    def __init__(self, wait_seconds: float = 2.0):
        super().__init__(wait_seconds)
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_seconds)
            except asyncio.TimeoutError:
                raise LockUnavailable(f"Could not acquire lock: {key}") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                # nobody else references this key; drop it
                del self._waiters[key]
                self._locks.pop(key, None)


class RedisKeyedLock(KeyedLock):
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 10,
        wait_seconds: float = 2.0,
    ):
        super().__init__(wait_seconds)
        self.redis = client
        self.ttl = ttl_seconds

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        async with DistributedLock(
            self.redis, key, ttl_seconds=self.ttl, wait_seconds=self.wait_seconds
        ):
            yield


def order_key(order_id: int) -> str:
    return f"order:{order_id}"


def rider_key(rider_id: int) -> str:
    return f"rider:{rider_id}"
