"""In-memory key-value storage."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """A stored value with optional expiration."""

    value: bytes
    expires_at: float | None = None

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class MemoryPipeline:
    """Queued operations applied under the store's lock in one step."""

    def __init__(self, store: "MemoryKVStore") -> None:
        self._store = store
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def get(self, key: str) -> "MemoryPipeline":
        self._ops.append(("get", (key,)))
        return self

    def set(self, key: str, value: bytes) -> "MemoryPipeline":
        self._ops.append(("set", (key, value)))
        return self

    def delete(self, key: str) -> "MemoryPipeline":
        self._ops.append(("delete", (key,)))
        return self

    async def execute(self) -> list[Any]:
        """Apply queued operations in order."""
        ops, self._ops = self._ops, []
        results: list[Any] = []
        async with self._store._lock:
            for name, args in ops:
                if name == "get":
                    results.append(self._store._get_unlocked(args[0]))
                elif name == "set":
                    self._store._data[args[0]] = CacheEntry(value=args[1])
                    results.append(True)
                else:
                    results.append(self._store._data.pop(args[0], None) is not None)
        return results


class MemoryKVStore:
    """In-memory key-value store.

    Suitable for development and testing. Data is lost on restart.
    """

    def __init__(self, **kwargs: Any) -> None:
        """Initialize memory KV store.

        Args:
            **kwargs: Ignored (for compatibility with other backends)
        """
        self._data: dict[str, CacheEntry] = {}
        self._sets: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    def _get_unlocked(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._data[key]
            return None
        return entry.value

    async def get(self, key: str) -> bytes | None:
        """Get a value by key."""
        async with self._lock:
            return self._get_unlocked(key)

    async def set(self, key: str, value: bytes, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        expires_at = time.time() + ttl if ttl else None
        async with self._lock:
            self._data[key] = CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        """Delete a key."""
        async with self._lock:
            self._data.pop(key, None)
            self._sets.pop(key, None)

    async def sadd(self, key: str, *members: str) -> None:
        """Add members to a set."""
        async with self._lock:
            self._sets.setdefault(key, set()).update(members)

    async def srem(self, key: str, *members: str) -> None:
        """Remove members from a set, dropping the set once empty."""
        async with self._lock:
            current = self._sets.get(key)
            if current is None:
                return
            current.difference_update(members)
            if not current:
                del self._sets[key]

    async def smembers(self, key: str) -> set[str]:
        """Return a copy of the set's members."""
        async with self._lock:
            return set(self._sets.get(key, ()))

    def pipeline(self) -> MemoryPipeline:
        """Start a batch of operations."""
        return MemoryPipeline(self)

    async def clear(self) -> None:
        """Clear all data. Useful for testing."""
        async with self._lock:
            self._data.clear()
            self._sets.clear()
