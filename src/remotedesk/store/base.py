"""Abstract base class for the shared key-value store.

Every relay component keeps its state here, so the store is the only
shared mutable resource in a deployment. Backends only need to provide
single-key primitives; multi-writer keys (the active target index and the
per-target command queues) are mutated through :meth:`KeyValueStore.update`,
which retries a read-modify-write under compare-and-set until it commits.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 16


class KeyValueStore(ABC):
    """Abstract interface for an opaque bytes key-value store.

    Keys are logical (``target:abc``); backends may add a namespace prefix.
    Values are raw bytes; the JSON helpers below are the only encoding the
    relay uses.

    Example usage::

        async with MemoryStore() as store:
            await store.set_json("target:abc", {"id": "abc"})
            await store.update("active_targets", lambda ids: (ids or []) + ["abc"])
    """

    name: str = "abstract"

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_backoff: float = 0.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._retry_backoff = retry_backoff

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or None if the key is absent.

        Raises:
            StoreError: If the backend cannot be reached.
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """Unconditionally overwrite the value at ``key``."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key is a no-op."""
        ...

    @abstractmethod
    async def compare_and_set(
        self, key: str, expected: bytes | None, value: bytes | None
    ) -> bool:
        """Atomically replace the value at ``key`` if it still equals ``expected``.

        Args:
            key: Logical key.
            expected: The raw value previously read, or None if the key was
                      absent.
            value: The new raw value, or None to delete the key.

        Returns:
            True if the write was applied, False if ``key`` changed since
            ``expected`` was read.
        """
        ...

    async def close(self) -> None:
        """Release backend connections. Safe to call multiple times."""

    # -- JSON helpers -------------------------------------------------------

    async def get_json(self, key: str) -> Any:
        return decode(await self.get(key))

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, encode(value))

    async def update(self, key: str, mutate: Callable[[Any], Any]) -> Any:
        """Apply ``mutate`` to the JSON value at ``key`` without losing updates.

        ``mutate`` receives the decoded current value (None when absent) and
        returns the new value, or None to delete the key. It may run more
        than once, must build a new value rather than modify its argument,
        and must not have side effects beyond its return value.
        An unchanged value is not written back.

        Returns:
            The value that was committed.

        Raises:
            StoreConflictError: If every attempt lost the race.
        """
        for attempt in range(1, self._max_attempts + 1):
            raw = await self.get(key)
            current = decode(raw)
            new = mutate(current)
            if new == current:
                return current
            if await self.compare_and_set(key, raw, None if new is None else encode(new)):
                if attempt > 1:
                    logger.debug("Update of %s committed after %d attempts", key, attempt)
                return new
            logger.debug("Update of %s lost a race (attempt %d)", key, attempt)
            await asyncio.sleep(self._retry_backoff * attempt)
        logger.warning("Giving up on %s after %d attempts", key, self._max_attempts)
        raise StoreConflictError(
            f"Concurrent updates kept invalidating {key!r}", key=key
        )

    async def __aenter__(self) -> KeyValueStore:
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


def encode(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def decode(raw: bytes | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StoreError(f"Stored value is not valid JSON: {e}") from e


class StoreError(Exception):
    """Raised when the backing store fails or holds unreadable data."""

    def __init__(self, message: str, key: str = "") -> None:
        super().__init__(message)
        self.key = key


class StoreConflictError(StoreError):
    """Raised when an optimistic update exhausts its retry budget."""
