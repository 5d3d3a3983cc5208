"""
In-Memory Storage Backend.

Default backend. Keeps everything in process memory, so cached scores are
lost on restart. Suitable for development, tests and single-process use.
"""

from __future__ import annotations

import time
from copy import deepcopy
from typing import Any

from trustfuse.storage.base import StorageBackend, register_storage_backend


class InMemoryStorage(StorageBackend):
    """In-memory storage backend with optional per-key expiry."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, tuple[dict[str, Any], float | None]]] = {}

    def _ensure_collection(self, collection: str) -> dict[str, tuple[dict[str, Any], float | None]]:
        if collection not in self._data:
            self._data[collection] = {}
        return self._data[collection]

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        coll = self._ensure_collection(collection)
        expires_at = time.time() + ttl if ttl is not None else None
        coll[key] = (deepcopy(data), expires_at)

    async def get(
        self,
        collection: str,
        key: str,
    ) -> dict[str, Any] | None:
        coll = self._ensure_collection(collection)
        entry = coll.get(key)
        if entry is None:
            return None

        data, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            del coll[key]
            return None
        return deepcopy(data)

    async def delete(
        self,
        collection: str,
        key: str,
    ) -> bool:
        coll = self._ensure_collection(collection)
        if key in coll:
            del coll[key]
            return True
        return False

    async def clear(self, collection: str) -> int:
        coll = self._ensure_collection(collection)
        count = len(coll)
        coll.clear()
        return count

    def __len__(self) -> int:
        return sum(len(coll) for coll in self._data.values())


register_storage_backend("memory", InMemoryStorage)
