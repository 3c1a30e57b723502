"""
Redis-based distributed lock.

Used by the payment state machine so only one API process creates a
gateway order for a given ride at a time; a second concurrent caller
gets a conflict instead of a duplicate order.

Implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

from ridehail.domain.exceptions import ConflictError

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(ConflictError):
    """Another holder owns the lock."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    @classmethod
    def for_ride_payment(
        cls, client: aioredis.Redis, ride_id: int, ttl_seconds: int = 30
    ) -> "DistributedLock":
        return cls(client, f"payment:ride:{ride_id}", ttl_seconds)

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Operation already in progress: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
