"""Presence registry: which targets exist and when they were last heard from.

Owns the ``target:{id}`` records and the ``active_targets`` index. Liveness
is never stored; it is derived from ``last_seen`` on every read.
"""

from __future__ import annotations

import logging
from typing import Any

from remotedesk.domain.errors import InvalidRequestError
from remotedesk.domain.models import UNKNOWN, TargetRecord
from remotedesk.relay.keys import ACTIVE_TARGETS, target_key
from remotedesk.store.base import KeyValueStore
from remotedesk.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

DEFAULT_ONLINE_WINDOW_MS = 120_000

_DESCRIPTIVE_FIELDS = ("username", "hostname", "os", "ip")


class PresenceRegistry:
    """Tracks registered targets and their last contact time."""

    def __init__(
        self,
        store: KeyValueStore,
        online_window_ms: int = DEFAULT_ONLINE_WINDOW_MS,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._online_window_ms = online_window_ms
        self._clock = clock

    async def register(self, info: dict[str, Any]) -> str:
        """Create or refresh a target record and add it to the active index.

        Descriptive fields missing from ``info`` default to ``"Unknown"``.
        A re-registration keeps the original ``first_seen``.

        Args:
            info: Mapping with ``id`` and optional username, hostname, os, ip.

        Returns:
            The registered target id.

        Raises:
            InvalidRequestError: If the id is missing or blank.
        """
        target_id = str(info.get("id") or "").strip()
        if not target_id:
            raise InvalidRequestError("target_id is required", field="target_id")

        now = self._clock()
        fields = {name: info.get(name) or UNKNOWN for name in _DESCRIPTIVE_FIELDS}

        def upsert(current: dict | None) -> dict:
            first_seen = current.get("first_seen", now) if current else now
            return TargetRecord(
                id=target_id, first_seen=first_seen, last_seen=now, **fields
            ).to_stored()

        def add_to_index(ids: list | None) -> list:
            ids = ids or []
            return ids if target_id in ids else [*ids, target_id]

        await self._store.update(target_key(target_id), upsert)
        await self._store.update(ACTIVE_TARGETS, add_to_index)
        logger.info("Registered target %s (%s@%s)", target_id, fields["username"], fields["hostname"])
        return target_id

    async def heartbeat(self, target_id: str) -> bool:
        """Bump ``last_seen`` for a known target.

        Returns:
            True if the target exists, False if it was never registered.
            An unknown id is a successful no-op, not an error.
        """
        now = self._clock()
        known = False

        def bump(current: dict | None) -> dict | None:
            nonlocal known
            known = current is not None
            if current is None:
                return None
            return {**current, "last_seen": max(now, current.get("last_seen", 0))}

        await self._store.update(target_key(target_id), bump)
        if not known:
            logger.debug("Heartbeat for unknown target %s ignored", target_id)
        return known

    touch = heartbeat

    async def get(self, target_id: str) -> TargetRecord | None:
        data = await self._store.get_json(target_key(target_id))
        if data is None:
            return None
        return TargetRecord.model_validate(data).with_presence(
            self._clock(), self._online_window_ms
        )

    async def list(self) -> list[TargetRecord]:
        """All indexed targets that still have a record, newest contact first."""
        ids = await self._store.get_json(ACTIVE_TARGETS) or []
        now = self._clock()
        records = []
        for target_id in ids:
            data = await self._store.get_json(target_key(target_id))
            if data is None:
                logger.debug("Indexed target %s has no record, skipping", target_id)
                continue
            records.append(
                TargetRecord.model_validate(data).with_presence(now, self._online_window_ms)
            )
        records.sort(key=lambda r: (-r.last_seen, r.id))
        return records

    async def retire(self, target_id: str) -> bool:
        """Remove a target's record and its index entry.

        Returns:
            True if the target was known.
        """
        known = await self._store.get(target_key(target_id)) is not None

        def drop_from_index(ids: list | None) -> list | None:
            if not ids or target_id not in ids:
                return ids
            return [i for i in ids if i != target_id] or None

        # Unindex first so a failure between the writes cannot orphan an index entry
        await self._store.update(ACTIVE_TARGETS, drop_from_index)
        await self._store.delete(target_key(target_id))
        logger.info("Retired target %s (known=%s)", target_id, known)
        return known
