"""
Tests for storage backends and the ScoreCache.

Tests cover:
- InMemoryStorage CRUD and expiry
- RedisStorage against a mocked redis.asyncio client
- get_storage() backend selection
- ScoreCache TTL behaviour and get_or_compute()
"""

import json
import os
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import NOW
from trustfuse.core.exceptions import ConfigurationError
from trustfuse.core.types import ReputationResult, ReputationTier
from trustfuse.storage import InMemoryStorage, RedisStorage, get_storage, list_storage_backends
from trustfuse.trust.cache import COLLECTION, ScoreCache


def _result(agent_id: str = "Agent-1", score: int = 640) -> ReputationResult:
    return ReputationResult(
        agent_id=agent_id,
        final_score=score,
        tier=ReputationTier.ESTABLISHED,
        per_source=(),
        overall_confidence=0.5,
        computed_at=NOW,
    )


# ─────────────────────────────────────────────────────────────────
# Storage Backend Tests
# ─────────────────────────────────────────────────────────────────

class TestInMemoryStorage:
    """Tests for the in-memory backend."""

    @pytest.mark.asyncio
    async def test_save_get_delete(self, storage):
        await storage.save("c", "k", {"v": 1})
        assert await storage.get("c", "k") == {"v": 1}
        assert await storage.delete("c", "k") is True
        assert await storage.delete("c", "k") is False
        assert await storage.get("c", "k") is None

    @pytest.mark.asyncio
    async def test_returns_copies(self, storage):
        data = {"nested": {"v": 1}}
        await storage.save("c", "k", data)
        data["nested"]["v"] = 2

        fetched = await storage.get("c", "k")
        fetched["nested"]["v"] = 3
        assert await storage.get("c", "k") == {"nested": {"v": 1}}

    @pytest.mark.asyncio
    async def test_ttl_expiry(self, storage):
        await storage.save("c", "k", {"v": 1}, ttl=60)
        with patch("trustfuse.storage.memory.time.time", return_value=time.time() + 61):
            assert await storage.get("c", "k") is None

    @pytest.mark.asyncio
    async def test_clear_collection(self, storage):
        await storage.save("a", "1", {})
        await storage.save("a", "2", {})
        await storage.save("b", "1", {})

        assert await storage.clear("a") == 2
        assert len(storage) == 1

    @pytest.mark.asyncio
    async def test_health_check(self, storage):
        assert await storage.health_check() is True


class TestRedisStorage:
    """Tests for the Redis backend with a mocked client."""

    def setup_method(self):
        self.client = MagicMock()
        self.client.set = AsyncMock(return_value=True)
        self.client.setex = AsyncMock(return_value=True)
        self.client.get = AsyncMock(return_value=None)
        self.client.delete = AsyncMock(return_value=1)
        self.client.ping = AsyncMock(return_value=True)
        self.client.aclose = AsyncMock()
        self.storage = RedisStorage(client=self.client, prefix="tf")

    @pytest.mark.asyncio
    async def test_save_with_ttl_uses_setex(self):
        await self.storage.save("reputation_cache", "reputation:a", {"v": 1}, ttl=300)
        self.client.setex.assert_awaited_once_with(
            "tf:reputation_cache:reputation:a", 300, json.dumps({"v": 1})
        )
        self.client.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_without_ttl(self):
        await self.storage.save("c", "k", {"v": 1})
        self.client.set.assert_awaited_once_with("tf:c:k", json.dumps({"v": 1}))

    @pytest.mark.asyncio
    async def test_get_decodes_json(self):
        self.client.get.return_value = json.dumps({"v": 1})
        assert await self.storage.get("c", "k") == {"v": 1}
        self.client.get.assert_awaited_once_with("tf:c:k")

    @pytest.mark.asyncio
    async def test_get_discards_garbage(self):
        self.client.get.return_value = "not-json"
        assert await self.storage.get("c", "k") is None

    @pytest.mark.asyncio
    async def test_delete(self):
        assert await self.storage.delete("c", "k") is True
        self.client.delete.return_value = 0
        assert await self.storage.delete("c", "k") is False

    @pytest.mark.asyncio
    async def test_clear_scans_collection(self):
        async def scan(match):
            assert match == "tf:c:*"
            for key in ("tf:c:1", "tf:c:2"):
                yield key

        self.client.scan_iter = scan
        assert await self.storage.clear("c") == 2

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await self.storage.health_check() is True
        self.client.ping.side_effect = ConnectionError("refused")
        assert await self.storage.health_check() is False

    @pytest.mark.asyncio
    async def test_close(self):
        await self.storage.close()
        self.client.aclose.assert_awaited_once()


class TestGetStorage:
    """Tests for backend selection."""

    def test_registered_backends(self):
        assert {"memory", "redis"} <= set(list_storage_backends())

    def test_default_is_memory(self):
        with patch.dict(os.environ, {}, clear=True):
            assert isinstance(get_storage(), InMemoryStorage)

    def test_from_env(self):
        with patch.dict(os.environ, {"TRUSTFUSE_STORAGE_BACKEND": "redis"}, clear=True):
            assert isinstance(get_storage(), RedisStorage)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError, match="Unknown storage backend"):
            get_storage("sqlite")


# ─────────────────────────────────────────────────────────────────
# Score Cache Tests
# ─────────────────────────────────────────────────────────────────

class TestScoreCache:
    """Tests for ScoreCache TTL behavior."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, storage):
        cache = ScoreCache(storage)
        await cache.set("Agent-1", _result())

        cached = await cache.get("Agent-1")
        assert cached == _result()

    @pytest.mark.asyncio
    async def test_key_is_case_sensitive(self, storage):
        cache = ScoreCache(storage)
        await cache.set("5VKzAbCdEf", _result())

        assert await cache.get("5vkzabcdef") is None
        assert await cache.get(" 5VKzAbCdEf ") is not None
        assert await storage.get(COLLECTION, "reputation:5VKzAbCdEf") is not None

    @pytest.mark.asyncio
    async def test_cache_miss(self, storage):
        assert await ScoreCache(storage).get("nobody") is None

    @pytest.mark.asyncio
    async def test_expired_entry_removed(self, storage):
        cache = ScoreCache(storage, ttl=300)
        await storage.save(
            COLLECTION,
            "reputation:agent-1",
            {"data": _result().to_dict(), "_expires_at": time.time() - 1},
        )

        assert await cache.get("agent-1") is None
        assert await storage.get(COLLECTION, "reputation:agent-1") is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_dropped(self, storage):
        cache = ScoreCache(storage)
        await storage.save(
            COLLECTION, "reputation:agent-1", {"data": {"bogus": 1}, "_expires_at": time.time() + 60}
        )

        assert await cache.get("agent-1") is None
        assert await storage.get(COLLECTION, "reputation:agent-1") is None

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_store(self, storage):
        cache = ScoreCache(storage, ttl=0)
        await cache.set("agent-1", _result())
        assert len(storage) == 0

    @pytest.mark.asyncio
    async def test_invalidate(self, storage):
        cache = ScoreCache(storage)
        await cache.set("agent-1", _result())

        assert await cache.invalidate("agent-1") is True
        assert await cache.get("agent-1") is None

    @pytest.mark.asyncio
    async def test_clear(self, storage):
        cache = ScoreCache(storage)
        await cache.set("agent-1", _result("agent-1"))
        await cache.set("agent-2", _result("agent-2"))

        assert await cache.clear() == 2
        assert await cache.get("agent-2") is None

    @pytest.mark.asyncio
    async def test_get_or_compute(self, storage):
        cache = ScoreCache(storage)
        compute = AsyncMock(return_value=_result())

        first, hit = await cache.get_or_compute("agent-1", compute)
        assert hit is False
        second, hit = await cache.get_or_compute("agent-1", compute)
        assert hit is True
        assert first == second
        compute.assert_awaited_once()
