"""Redis key-value storage backend."""

from __future__ import annotations

from typing import Any

import redis.asyncio as aioredis


class RedisPipeline:
    """Thin wrapper over a non-transactional redis pipeline."""

    def __init__(self, pipe: Any) -> None:
        self._pipe = pipe

    def get(self, key: str) -> "RedisPipeline":
        self._pipe.get(key)
        return self

    def set(self, key: str, value: bytes) -> "RedisPipeline":
        self._pipe.set(key, value)
        return self

    def delete(self, key: str) -> "RedisPipeline":
        self._pipe.delete(key)
        return self

    async def execute(self) -> list[Any]:
        return await self._pipe.execute()


class RedisKVStore:
    """Redis-backed key-value store for deployment records.

    Values are stored as raw bytes; sets hold deployment ids as strings.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        client: aioredis.Redis | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize Redis KV store.

        Args:
            redis_url: Connection URL, e.g. redis://localhost:6379/0
            client: Pre-built client (takes precedence over redis_url)
            **kwargs: Ignored
        """
        if client is None and not redis_url:
            raise ValueError(
                "RedisKVStore requires redis_url. "
                "Use 'memory' backend for development."
            )
        self._client = client if client is not None else aioredis.from_url(redis_url)

    async def get(self, key: str) -> bytes | None:
        """Get a value by key."""
        return await self._client.get(key)

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        await self._client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self._client.delete(key)

    async def sadd(self, key: str, *members: str) -> None:
        if members:
            await self._client.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> None:
        if members:
            await self._client.srem(key, *members)

    async def smembers(self, key: str) -> set[str]:
        members = await self._client.smembers(key)
        return {m.decode() if isinstance(m, bytes) else m for m in members}

    def pipeline(self) -> RedisPipeline:
        """Start a batch of operations."""
        return RedisPipeline(self._client.pipeline(transaction=False))

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
