"""
Storage backends for TrustFuse.

Configuration via environment:
    TRUSTFUSE_STORAGE_BACKEND=memory  # or 'redis'
    TRUSTFUSE_REDIS_URL=redis://localhost:6379/0

Example:
    >>> from trustfuse.storage import get_storage, InMemoryStorage
    >>> storage = get_storage()
    >>> storage = InMemoryStorage()
"""

from __future__ import annotations

import os

from trustfuse.core.exceptions import ConfigurationError
from trustfuse.storage.base import (
    StorageBackend,
    get_storage_backend,
    list_storage_backends,
    register_storage_backend,
)
from trustfuse.storage.memory import InMemoryStorage
from trustfuse.storage.redis import RedisStorage


def get_storage(backend_name: str | None = None, **kwargs) -> StorageBackend:
    """
    Get storage backend from environment or by name.

    Args:
        backend_name: Backend name, or None to read TRUSTFUSE_STORAGE_BACKEND
        **kwargs: Passed to the backend constructor (e.g. ``redis_url``)

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    if backend_name is None:
        backend_name = os.environ.get("TRUSTFUSE_STORAGE_BACKEND", "memory")

    backend_class = get_storage_backend(backend_name.strip().lower())
    if backend_class is None:
        available = list_storage_backends()
        raise ConfigurationError(
            f"Unknown storage backend: '{backend_name}'. Available: {', '.join(available)}",
            details={"backend": backend_name},
        )

    return backend_class(**kwargs)


__all__ = [
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    "get_storage_backend",
    "list_storage_backends",
    "register_storage_backend",
]
