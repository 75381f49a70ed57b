"""Tests for the command queue."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import TypeAdapter

from remotedesk.domain.errors import InvalidRequestError
from remotedesk.domain.models import CommandPayload, CommandStatus, KeyboardCommand, MouseCommand
from remotedesk.relay.commands import CommandQueue
from remotedesk.relay.keys import command_key, queue_key
from remotedesk.store.memory import MemoryStore

payloads = TypeAdapter(CommandPayload)


def _key(key: str) -> CommandPayload:
    return payloads.validate_python({"type": "keyboard", "data": {"action": "press", "key": key}})


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_then_list(
        self, commands: CommandQueue, click_command: MouseCommand, clock
    ) -> None:
        command_id = await commands.enqueue("abc", click_command)
        listed = await commands.list("abc")
        assert len(listed) == 1
        assert listed[0].id == command_id
        assert listed[0].target_id == "abc"
        assert listed[0].status is CommandStatus.PENDING
        assert listed[0].timestamp == clock.now
        assert listed[0].data == {"action": "click", "button": "left", "x": 0.5, "y": 0.5}

    @pytest.mark.asyncio
    async def test_ids_unique_within_same_millisecond(
        self, commands: CommandQueue, type_command: KeyboardCommand
    ) -> None:
        ids = [await commands.enqueue("abc", type_command) for _ in range(50)]
        assert len(set(ids)) == 50

    @pytest.mark.asyncio
    async def test_empty_target_rejected(
        self, commands: CommandQueue, store: MemoryStore, type_command: KeyboardCommand
    ) -> None:
        with pytest.raises(InvalidRequestError):
            await commands.enqueue("", type_command)
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_list_is_fifo(self, commands: CommandQueue) -> None:
        ids = [await commands.enqueue("abc", _key(k)) for k in ("a", "b", "c")]
        assert [c.id for c in await commands.list("abc")] == ids

    @pytest.mark.asyncio
    async def test_list_is_non_destructive(
        self, commands: CommandQueue, type_command: KeyboardCommand
    ) -> None:
        await commands.enqueue("abc", type_command)
        first = await commands.list("abc")
        assert await commands.list("abc") == first

    @pytest.mark.asyncio
    async def test_list_unknown_target(self, commands: CommandQueue) -> None:
        assert await commands.list("ghost") == []

    @pytest.mark.asyncio
    async def test_queues_are_per_target(
        self, commands: CommandQueue, type_command: KeyboardCommand
    ) -> None:
        await commands.enqueue("abc", type_command)
        assert await commands.list("other") == []

    @pytest.mark.asyncio
    async def test_missing_record_skipped(
        self, commands: CommandQueue, store: MemoryStore, type_command: KeyboardCommand
    ) -> None:
        lost = await commands.enqueue("abc", type_command)
        kept = await commands.enqueue("abc", type_command)
        await store.delete(command_key("abc", lost))
        assert [c.id for c in await commands.list("abc")] == [kept]


class TestAck:
    @pytest.mark.asyncio
    async def test_ack_removes_from_queue_and_store(
        self, commands: CommandQueue, store: MemoryStore, click_command: MouseCommand
    ) -> None:
        command_id = await commands.enqueue("abc", click_command)
        assert await commands.ack("abc", command_id) is True
        assert await commands.list("abc") == []
        assert await store.get(command_key("abc", command_id)) is None
        assert await store.get(queue_key("abc")) is None

    @pytest.mark.asyncio
    async def test_ack_twice_is_noop(
        self, commands: CommandQueue, click_command: MouseCommand
    ) -> None:
        command_id = await commands.enqueue("abc", click_command)
        await commands.ack("abc", command_id)
        assert await commands.ack("abc", command_id) is False
        assert await commands.list("abc") == []

    @pytest.mark.asyncio
    async def test_ack_unknown_id(self, commands: CommandQueue, store: MemoryStore) -> None:
        assert await commands.ack("abc", "nope") is False
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_ack_preserves_order_of_others(self, commands: CommandQueue) -> None:
        a, b, c, d = [await commands.enqueue("abc", _key(k)) for k in "abcd"]
        await commands.ack("abc", c)
        await commands.ack("abc", a)
        assert [cmd.id for cmd in await commands.list("abc")] == [b, d]

    @pytest.mark.asyncio
    async def test_ack_removes_every_occurrence(
        self, commands: CommandQueue, store: MemoryStore, type_command: KeyboardCommand
    ) -> None:
        command_id = await commands.enqueue("abc", type_command)
        other = await commands.enqueue("abc", type_command)
        await store.set_json(queue_key("abc"), [command_id, other, command_id])
        await commands.ack("abc", command_id)
        assert await store.get_json(queue_key("abc")) == [other]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_two_concurrent_enqueues(
        self, slow_store: MemoryStore, clock, click_command: MouseCommand
    ) -> None:
        queue = CommandQueue(slow_store, clock=clock)
        first, second = await asyncio.gather(
            queue.enqueue("abc", click_command),
            queue.enqueue("abc", click_command),
        )
        listed = [c.id for c in await queue.list("abc")]
        assert len(listed) == 2
        assert set(listed) == {first, second}

    @pytest.mark.asyncio
    async def test_many_concurrent_enqueues(self, slow_store: MemoryStore, clock) -> None:
        queue = CommandQueue(slow_store, clock=clock)
        ids = await asyncio.gather(*(queue.enqueue("abc", _key(str(n))) for n in range(25)))
        assert sorted(c.id for c in await queue.list("abc")) == sorted(ids)

    @pytest.mark.asyncio
    async def test_concurrent_enqueue_and_ack(self, slow_store: MemoryStore, clock) -> None:
        queue = CommandQueue(slow_store, clock=clock)
        acked = [await queue.enqueue("abc", _key(str(n))) for n in range(10)]

        results = await asyncio.gather(
            *(queue.ack("abc", command_id) for command_id in acked),
            *(queue.enqueue("abc", _key("x")) for _ in range(10)),
        )
        added = results[10:]
        assert all(results[:10])
        assert sorted(c.id for c in await queue.list("abc")) == sorted(added)


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge(
        self, commands: CommandQueue, store: MemoryStore, type_command: KeyboardCommand
    ) -> None:
        await commands.enqueue("abc", type_command)
        await commands.enqueue("abc", type_command)
        keep = await commands.enqueue("other", type_command)
        assert await commands.purge("abc") == 2
        assert await commands.list("abc") == []
        assert [c.id for c in await commands.list("other")] == [keep]
        assert not any(k.startswith("command:abc:") for k in store.keys())

    @pytest.mark.asyncio
    async def test_purge_empty(self, commands: CommandQueue) -> None:
        assert await commands.purge("abc") == 0
