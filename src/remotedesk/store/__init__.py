"""Key-value store module for remotedesk.

Holds all relay state behind a small bytes get/set/delete interface with
compare-and-set, enabling the relay to run in-process (MemoryStore) or
shared across workers (RedisStore) without changing any other code.

Public API:
    KeyValueStore -- Abstract base class
    MemoryStore -- In-process backend
    RedisStore -- Redis backend
    build_store -- Construct the backend selected in StoreConfig
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from remotedesk.store.base import KeyValueStore, StoreConflictError, StoreError
from remotedesk.store.memory import MemoryStore

if TYPE_CHECKING:
    from remotedesk.config.settings import StoreConfig

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "StoreConflictError",
    "StoreError",
    "build_store",
]


def build_store(config: StoreConfig) -> KeyValueStore:
    """Create the store backend described by ``config``."""
    if config.backend == "redis":
        from remotedesk.store.redis_backend import RedisStore

        return RedisStore(
            url=config.redis_url,
            namespace=config.namespace,
            socket_timeout=config.socket_timeout,
            max_attempts=config.max_attempts,
            retry_backoff=config.retry_backoff,
        )
    return MemoryStore(
        max_attempts=config.max_attempts,
        retry_backoff=config.retry_backoff,
    )


def __getattr__(name: str) -> type:
    """Lazy import for backends that require external deps."""
    if name == "RedisStore":
        from remotedesk.store.redis_backend import RedisStore
        return RedisStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
