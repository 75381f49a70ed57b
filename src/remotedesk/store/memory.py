"""In-process key-value store.

Backs single-worker deployments and the test suite. All state lives in
one dict guarded by a lock, so compare-and-set is atomic for every task
and thread in the process.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from remotedesk.store.base import DEFAULT_MAX_ATTEMPTS, KeyValueStore

logger = logging.getLogger(__name__)


class MemoryStore(KeyValueStore):
    """Dict-backed store.

    Args:
        latency: Seconds to sleep before every operation. Non-zero values
                 make concurrently scheduled tasks interleave their
                 read-modify-write sequences, the way remote calls would.
    """

    name = "memory"

    def __init__(
        self,
        latency: float = 0.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_backoff: float = 0.0,
    ) -> None:
        super().__init__(max_attempts=max_attempts, retry_backoff=retry_backoff)
        self._latency = latency
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    async def get(self, key: str) -> bytes | None:
        await self._pause()
        with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        await self._pause()
        with self._lock:
            self._data[key] = bytes(value)

    async def delete(self, key: str) -> None:
        await self._pause()
        with self._lock:
            self._data.pop(key, None)

    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes | None
    ) -> bool:
        await self._pause()
        with self._lock:
            if self._data.get(key) != expected:
                return False
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = bytes(value)
            return True

    async def _pause(self) -> None:
        # Always yield so gathered tasks interleave even with zero latency
        await asyncio.sleep(self._latency)
