"""Screen relay: a single-slot, time-bounded frame cache per target.

Each push overwrites the previous frame. A read of a frame older than the
TTL clears the slot and reports it as expired, so a stalled stream is
distinguishable from one that never started.
"""

from __future__ import annotations

import logging

from remotedesk.domain.errors import ExpiredError, InvalidRequestError, NotFoundError
from remotedesk.domain.models import ScreenFrame
from remotedesk.relay.keys import screen_key
from remotedesk.relay.presence import PresenceRegistry
from remotedesk.store.base import KeyValueStore, decode
from remotedesk.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 15_000
DEFAULT_MIN_PAYLOAD_BYTES = 100
DEFAULT_QUALITY = 70


class ScreenRelay:
    """Relays the latest captured frame from an agent to controllers.

    Args:
        store: Shared key-value store.
        presence: Registry whose ``last_seen`` is bumped on every push.
                  If None, pushes do not affect presence.
        ttl_ms: Frames older than this are expired on read.
        min_payload_bytes: Shorter payloads are rejected as truncated.
        default_quality: Quality recorded when the agent omits one.
    """

    def __init__(
        self,
        store: KeyValueStore,
        presence: PresenceRegistry | None = None,
        ttl_ms: int = DEFAULT_TTL_MS,
        min_payload_bytes: int = DEFAULT_MIN_PAYLOAD_BYTES,
        default_quality: int = DEFAULT_QUALITY,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._presence = presence
        self._ttl_ms = ttl_ms
        self._min_payload_bytes = min_payload_bytes
        self._default_quality = default_quality
        self._clock = clock

    async def push(self, target_id: str, payload: str, quality: int | None = None) -> ScreenFrame:
        """Store ``payload`` as the target's current frame.

        Raises:
            InvalidRequestError: If the payload is below the size floor.
        """
        if len(payload) < self._min_payload_bytes:
            raise InvalidRequestError(
                f"Screen payload too short ({len(payload)} < {self._min_payload_bytes} bytes)",
                field="screen",
            )
        frame = ScreenFrame(
            target_id=target_id,
            screen=payload,
            timestamp=self._clock(),
            quality=quality if quality is not None else self._default_quality,
        )
        await self._store.set_json(screen_key(target_id), frame.model_dump())
        if self._presence is not None:
            await self._presence.touch(target_id)
        logger.debug("Frame from %s stored (%d bytes, q=%d)", target_id, len(payload), frame.quality)
        return frame

    async def pull(self, target_id: str) -> ScreenFrame:
        """Return the target's current frame.

        Raises:
            NotFoundError: If no frame is stored.
            ExpiredError: If the stored frame was older than the TTL; the
                          slot is cleared before raising.
        """
        key = screen_key(target_id)
        raw = await self._store.get(key)
        if raw is None:
            raise NotFoundError("No screen data")
        frame = ScreenFrame.model_validate(decode(raw))
        age = frame.age(self._clock())
        if age > self._ttl_ms:
            # Only clear the frame we read; a newer push must survive
            cleared = await self._store.compare_and_set(key, raw, None)
            logger.debug("Frame from %s expired (age=%dms, cleared=%s)", target_id, age, cleared)
            raise ExpiredError("Screen data expired")
        return frame

    async def clear(self, target_id: str) -> None:
        await self._store.delete(screen_key(target_id))
