# shopassist/utils/locks.py
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from redis.asyncio import Redis
import asyncio, uuid

# compare-and-delete: removes KEYS[1] only while it still holds ARGV[1]
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""

class LockTimeout(Exception):
    """Raised when a lock could not be taken within the allowed wait."""
    pass

class RedisLock:
    """
    Single-instance lock using SET NX EX.
    Serializes cache writes for the same key across workers.
    """
    def __init__(self, redis: Redis, key: str, ttl: int = 10):
        self.redis = redis
        self.key = f"lock:{key}"
        self.ttl = ttl
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        ok = await self.redis.set(self.key, token, nx=True, ex=self.ttl)
        if ok:
            self._token = token
            return True
        return False

    async def acquire_blocking(self, timeout: float) -> None:
        """Poll until the lock is ours or `timeout` seconds have passed."""
        deadline = asyncio.get_running_loop().time() + timeout
        while not await self.acquire():
            if asyncio.get_running_loop().time() >= deadline:
                raise LockTimeout(f"Could not acquire {self.key} within {timeout}s")
            await asyncio.sleep(0.05)

    async def release(self) -> None:
        # only drop the key if it still holds our token (it may have expired and been retaken)
        if self._token is None:
            return
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None


class KeyedLocks:
    """
    Per-key mutual exclusion.
    Uses RedisLock when a client is available, otherwise one asyncio.Lock per
    key inside this process.
    """
    def __init__(self, redis: Optional[Redis] = None, ttl: int = 10):
        self.redis = redis
        self.ttl = ttl
        self._local: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}  # holders + waiters per key

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        if self.redis is not None:
            lock = RedisLock(self.redis, key, ttl=self.ttl)
            await lock.acquire_blocking(timeout=self.ttl)
            try:
                yield
            finally:
                await lock.release()
            return

        local = self._local.get(key)
        if local is None:
            local = self._local[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with local:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._local[key]
