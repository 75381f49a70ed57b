"""Redis key-value store backend.

Lets any number of relay workers share state. Compare-and-set is built on
optimistic transactions: the key is WATCHed, read and compared, and the
write is queued in MULTI/EXEC so Redis aborts it if another client touched
the key in between.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from remotedesk.store.base import DEFAULT_MAX_ATTEMPTS, KeyValueStore, StoreError

logger = logging.getLogger(__name__)


class RedisStore(KeyValueStore):
    """Store backed by a Redis server.

    Args:
        url: Redis connection URL.
        namespace: Prefix joined to every logical key with ``:``.
        socket_timeout: Per-command socket timeout in seconds.
        client: Optional pre-configured client (for testing).
    """

    name = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        namespace: str = "remote_control",
        socket_timeout: float = 5.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_backoff: float = 0.002,
        client: Redis | None = None,
    ) -> None:
        super().__init__(max_attempts=max_attempts, retry_backoff=retry_backoff)
        self._namespace = namespace
        self._client: Redis | None = client
        if self._client is None:
            self._client = Redis.from_url(
                url,
                socket_timeout=socket_timeout,
                decode_responses=False,  # values are opaque bytes
            )
        logger.info("Redis store configured (namespace=%s)", namespace or "<none>")

    def _name(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    def _redis(self) -> Redis:
        if self._client is None:
            raise StoreError("Redis store is closed")
        return self._client

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._redis().get(self._name(key))
        except RedisError as e:
            raise StoreError(f"Redis GET {key} failed: {e}", key=key) from e

    async def set(self, key: str, value: bytes) -> None:
        try:
            await self._redis().set(self._name(key), value)
        except RedisError as e:
            raise StoreError(f"Redis SET {key} failed: {e}", key=key) from e

    async def delete(self, key: str) -> None:
        try:
            await self._redis().delete(self._name(key))
        except RedisError as e:
            raise StoreError(f"Redis DEL {key} failed: {e}", key=key) from e

    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes | None
    ) -> bool:
        name = self._name(key)
        try:
            async with self._redis().pipeline(transaction=True) as pipe:
                await pipe.watch(name)
                current = await pipe.get(name)
                if current != expected:
                    return False
                pipe.multi()
                if value is None:
                    pipe.delete(name)
                else:
                    pipe.set(name, value)
                await pipe.execute()
                return True
        except WatchError:
            return False
        except RedisError as e:
            raise StoreError(f"Redis compare-and-set on {key} failed: {e}", key=key) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis store closed")
