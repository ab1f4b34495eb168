from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from core.config import RedisConfig


class CacheBackend(Protocol):
    async def incr(self, key: str, ttl: int | None = None) -> int: ...
    async def delete(self, key: str) -> None: ...
    async def close(self) -> None: ...


@dataclass(slots=True)
class _Counter:
    value: int
    expires_at: float | None


class MemoryCache(CacheBackend):
    """Process-local counters with optional expiry."""

    def __init__(self) -> None:
        self._store: dict[str, _Counter] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _expired(entry: _Counter, now: float) -> bool:
        return entry.expires_at is not None and now >= entry.expires_at

    async def incr(self, key: str, ttl: int | None = None) -> int:
        async with self._lock:
            now = time.monotonic()
            entry = self._store.get(key)
            if entry is None or self._expired(entry, now):
                self._store[key] = _Counter(value=1, expires_at=now + ttl if ttl else None)
                return 1
            entry.value += 1
            return entry.value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def close(self) -> None:
        self._store.clear()


class RedisCache(CacheBackend):
    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, decode_responses=True)

    async def incr(self, key: str, ttl: int | None = None) -> int:
        value = int(await self._client.incr(key))
        # Expiry is fixed by the first increment, matching MemoryCache.
        if ttl and value == 1:
            await self._client.expire(key, ttl)
        return value

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(config: RedisConfig) -> CacheBackend:
    if config.enabled:
        return RedisCache(config.url)
    return MemoryCache()
