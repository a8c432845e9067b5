"""KVStore protocol for key-value storage backends."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KVPipeline(Protocol):
    """Batch of KV operations queued and executed together."""

    def get(self, key: str) -> "KVPipeline":
        """Queue a get. Its result is returned by :meth:`execute`."""
        ...

    def set(self, key: str, value: bytes) -> "KVPipeline":
        """Queue a set."""
        ...

    def delete(self, key: str) -> "KVPipeline":
        """Queue a delete."""
        ...

    async def execute(self) -> list[Any]:
        """Run the queued operations in order and return one result per operation."""
        ...


@runtime_checkable
class KVStore(Protocol):
    """Protocol for key-value storage backends (in-memory, Redis)."""

    async def get(self, key: str) -> bytes | None:
        """Get a value by key. Returns None if not found."""
        ...

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a key. No-op if key doesn't exist."""
        ...

    async def sadd(self, key: str, *members: str) -> None:
        """Add members to the set stored at key."""
        ...

    async def srem(self, key: str, *members: str) -> None:
        """Remove members from the set stored at key."""
        ...

    async def smembers(self, key: str) -> set[str]:
        """Return all members of the set stored at key (empty if absent)."""
        ...

    def pipeline(self) -> KVPipeline:
        """Start a batch of operations."""
        ...
