"""Redis cache for cross-process deployments."""

from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as redis

from .base import BaseCache

# compare-and-delete in one round trip
_DELETE_IF_EQUALS = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisCache(BaseCache):
    """Redis-backed cache; locks use ``SET NX PX``."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        prefix: str = "toolflow:",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        client = await self._client()
        return await client.get(self.prefix + key)

    async def set(self, key: str, value: str, ttl_s: Optional[float] = None) -> None:
        client = await self._client()
        px = max(1, int(ttl_s * 1000)) if ttl_s is not None else None
        await client.set(self.prefix + key, value, px=px)

    async def delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(self.prefix + key)

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        client = await self._client()
        stored = await client.set(self.prefix + key, value, nx=True, px=ttl_ms)
        return bool(stored)

    async def delete_if_equals(self, key: str, value: str) -> bool:
        client = await self._client()
        deleted = await client.eval(_DELETE_IF_EQUALS, 1, self.prefix + key, value)
        return bool(deleted)
