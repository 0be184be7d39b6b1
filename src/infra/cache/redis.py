"""Redis-backed token cache.

Entries are JSON documents stored under ``<prefix><key>`` with a native
Redis expiry, so several API processes share one PayU access token per
organization instead of each fetching their own.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)


class RedisStorageAdapter(StoragePort):
    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        *,
        prefix: str = "orgbase:",
        client: aioredis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._prefix = prefix
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @property
    def client(self) -> aioredis.Redis:
        """Connection pool, created on first use."""
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url)  # type: ignore[no-untyped-call]
            logger.debug("Redis cache connected to %s", self._redis_url)
        return self._client

    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        # Non-positive TTLs mean "no expiry"; Redis rejects ex=0.
        expiry = ttl if ttl is not None and ttl > 0 else None
        await self.client.set(self._key(key), json.dumps(value), ex=expiry)

    async def get(self, key: str) -> Any | None:
        raw = await self.client.get(self._key(key))
        return None if raw is None else json.loads(raw)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
