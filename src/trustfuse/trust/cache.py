"""
Score Cache — TTL-based caching of ReputationResults.

Uses a StorageBackend (InMemory or Redis). Entries carry their own
``_expires_at`` so expiry holds even on backends without native TTLs.

Key pattern: reputation:{agent_id}   (exact agent id, surrounding whitespace stripped)
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

from trustfuse.core.logging import get_logger
from trustfuse.core.types import ReputationResult
from trustfuse.storage.base import StorageBackend

logger = get_logger("trust.cache")

DEFAULT_TTL = 300  # 5 minutes

COLLECTION = "reputation_cache"


class ScoreCache:
    """TTL cache of aggregated results, one entry per agent."""

    def __init__(self, storage: StorageBackend, ttl: int = DEFAULT_TTL) -> None:
        self._storage = storage
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def _key(agent_id: str) -> str:
        return f"reputation:{agent_id.strip()}"

    async def get(self, agent_id: str) -> ReputationResult | None:
        """
        Get cached result if not expired.

        Returns None on miss, expiry, or an entry that no longer decodes.
        """
        key = self._key(agent_id)
        entry = await self._storage.get(COLLECTION, key)
        if entry is None:
            return None

        expires_at = entry.get("_expires_at", 0)
        if time.time() > expires_at:
            await self._storage.delete(COLLECTION, key)
            return None

        try:
            return ReputationResult.from_dict(entry["data"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping undecodable cache entry for {agent_id}: {e}")
            await self._storage.delete(COLLECTION, key)
            return None

    async def set(
        self,
        agent_id: str,
        result: ReputationResult,
        ttl: int | None = None,
    ) -> None:
        """
        Store a result with TTL.

        Args:
            agent_id: Agent the result belongs to
            result: Aggregated result
            ttl: TTL in seconds (cache default if None); 0 disables caching
        """
        if ttl is None:
            ttl = self._ttl
        if ttl <= 0:
            return

        await self._storage.save(
            COLLECTION,
            self._key(agent_id),
            {"data": result.to_dict(), "_expires_at": time.time() + ttl},
            ttl=ttl,
        )

    async def invalidate(self, agent_id: str) -> bool:
        """Drop the cached result for one agent."""
        return await self._storage.delete(COLLECTION, self._key(agent_id))

    async def clear(self) -> int:
        """Drop every cached result (e.g. after a source config reload)."""
        count = await self._storage.clear(COLLECTION)
        logger.info(f"Cleared {count} cached reputation results")
        return count

    async def get_or_compute(
        self,
        agent_id: str,
        compute_fn: Callable[[], Awaitable[ReputationResult]],
        ttl: int | None = None,
    ) -> tuple[ReputationResult, bool]:
        """
        Get from cache or compute and store.

        Returns:
            Tuple of (result, cache_hit)
        """
        cached = await self.get(agent_id)
        if cached is not None:
            return cached, True

        result = await compute_fn()
        await self.set(agent_id, result, ttl)
        return result, False

    def describe(self) -> dict[str, Any]:
        return {"collection": COLLECTION, "ttl": self._ttl, "backend": type(self._storage).__name__}


__all__ = ["ScoreCache", "DEFAULT_TTL"]
