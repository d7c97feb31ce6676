"""Key/value caches for serialised route results."""
import time
from typing import Optional

import redis.asyncio as redis


def route_cache_key(source: str, destination: str) -> str:
    return f"{source.strip()}-{destination.strip()}".lower()


class MemoryCache:
    """Process-local cache with per-key expiry."""

    def __init__(self):
        self._entries: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)


class RedisCache:
    """Cache backed by a Redis server (``redis://`` or ``rediss://`` URL)."""

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(key, value, ex=ttl_seconds)
