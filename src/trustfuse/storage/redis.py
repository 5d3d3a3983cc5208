"""
Redis Storage Backend.

Shares cached reputation results across processes. Values are stored as
JSON; a TTL maps onto Redis key expiry (SETEX).
"""

from __future__ import annotations

import json
import os
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from trustfuse.core.logging import get_logger
from trustfuse.storage.base import StorageBackend, register_storage_backend

logger = get_logger("storage.redis")

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Keys are laid out as ``{prefix}:{collection}:{key}``.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "trustfuse",
        client: aioredis.Redis | None = None,
    ) -> None:
        """
        Args:
            redis_url: Redis connection URL (or from TRUSTFUSE_REDIS_URL env)
            prefix: Key prefix for all storage keys
            client: Pre-built client (tests, shared pools)
        """
        self._redis_url = redis_url or os.environ.get("TRUSTFUSE_REDIS_URL", DEFAULT_REDIS_URL)
        self._prefix = prefix
        self._client = client

    def _get_client(self) -> aioredis.Redis:
        """Lazy-load Redis client."""
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:{collection}:{key}"

    def _make_collection_pattern(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:*"

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        client = self._get_client()
        redis_key = self._make_key(collection, key)
        value = json.dumps(data)
        if ttl is not None:
            await client.setex(redis_key, max(1, int(ttl)), value)
        else:
            await client.set(redis_key, value)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        client = self._get_client()
        data = await client.get(self._make_key(collection, key))
        if data is None:
            return None

        try:
            return json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable value at {collection}:{key}")
            return None

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        client = self._get_client()
        result = await client.delete(self._make_key(collection, key))
        return result > 0

    async def clear(self, collection: str) -> int:
        client = self._get_client()
        count = 0
        async for redis_key in client.scan_iter(match=self._make_collection_pattern(collection)):
            count += await client.delete(redis_key)
        return count

    async def health_check(self) -> bool:
        """Check Redis connection."""
        try:
            await self._get_client().ping()
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


register_storage_backend("redis", RedisStorage)
