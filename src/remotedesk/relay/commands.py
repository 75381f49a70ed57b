"""Command queue: per-target FIFO of input commands awaiting execution.

Each command is stored as its own record under
``command:{target_id}:{command_id}``, and ``queue:{target_id}`` holds the
ordered list of pending ids. Agents peek the queue, execute, then ack each
command, which deletes it.
"""

from __future__ import annotations

import logging
import uuid

from remotedesk.domain.errors import InvalidRequestError
from remotedesk.domain.models import Command, CommandPayload
from remotedesk.relay.keys import command_key, queue_key
from remotedesk.store.base import KeyValueStore
from remotedesk.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


class CommandQueue:
    """Queues commands for targets and tracks their acknowledgement."""

    def __init__(self, store: KeyValueStore, clock: Clock = now_ms) -> None:
        self._store = store
        self._clock = clock

    def _new_id(self, now: int) -> str:
        return f"{now}-{uuid.uuid4().hex}"

    async def enqueue(self, target_id: str, payload: CommandPayload) -> str:
        """Append a command to the target's queue.

        The record is written before its id is queued, so a listed id
        never points at a record that has not been written yet.

        Returns:
            The generated command id.

        Raises:
            InvalidRequestError: If ``target_id`` is empty.
        """
        if not target_id or not target_id.strip():
            raise InvalidRequestError("target_id is required", field="target_id")

        now = self._clock()
        command = Command.from_payload(self._new_id(now), target_id, payload, now)
        await self._store.set_json(
            command_key(target_id, command.id), command.model_dump(mode="json")
        )
        await self._store.update(
            queue_key(target_id), lambda ids: [*(ids or []), command.id]
        )
        logger.info("Queued %s command %s for %s", command.type.value, command.id, target_id)
        return command.id

    async def list(self, target_id: str) -> list[Command]:
        """Pending commands in enqueue order. Does not consume them."""
        ids = await self._store.get_json(queue_key(target_id)) or []
        commands = []
        for command_id in ids:
            data = await self._store.get_json(command_key(target_id, command_id))
            if data is None:
                logger.debug("Queued command %s for %s has no record", command_id, target_id)
                continue
            commands.append(Command.model_validate(data))
        return commands

    async def ack(self, target_id: str, command_id: str) -> bool:
        """Mark a command as executed.

        Removes every occurrence of ``command_id`` from the queue and deletes
        its record. Acking an unknown or already-acked id is a no-op.

        Returns:
            True if the id was in the queue.
        """
        found = False

        def remove(ids: list | None) -> list | None:
            nonlocal found
            found = bool(ids) and command_id in ids
            if not found:
                return ids
            remaining = [i for i in ids if i != command_id]
            return remaining or None

        await self._store.update(queue_key(target_id), remove)
        await self._store.delete(command_key(target_id, command_id))
        logger.debug("Acked command %s for %s (queued=%s)", command_id, target_id, found)
        return found

    async def purge(self, target_id: str) -> int:
        """Drop the whole queue and every record it references.

        Returns:
            The number of queued ids that were dropped.
        """
        dropped: list[str] = []

        def take_all(ids: list | None) -> None:
            dropped[:] = ids or []
            return None

        await self._store.update(queue_key(target_id), take_all)
        for command_id in dropped:
            await self._store.delete(command_key(target_id, command_id))
        if dropped:
            logger.info("Purged %d queued commands for %s", len(dropped), target_id)
        return len(dropped)
