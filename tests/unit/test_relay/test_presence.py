"""Tests for the presence registry."""

from __future__ import annotations

import asyncio

import pytest

from remotedesk.domain.errors import InvalidRequestError
from remotedesk.relay.keys import ACTIVE_TARGETS, target_key
from remotedesk.relay.presence import PresenceRegistry
from remotedesk.store.memory import MemoryStore


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_then_list(self, presence: PresenceRegistry) -> None:
        assert await presence.register({"id": "abc", "username": "bob"}) == "abc"
        targets = await presence.list()
        assert len(targets) == 1
        assert targets[0].id == "abc"
        assert targets[0].username == "bob"
        assert targets[0].hostname == "Unknown"
        assert targets[0].online is True

    @pytest.mark.asyncio
    async def test_register_twice_does_not_duplicate_index(
        self, presence: PresenceRegistry, store: MemoryStore
    ) -> None:
        await presence.register({"id": "abc"})
        await presence.register({"id": "abc"})
        assert await store.get_json(ACTIVE_TARGETS) == ["abc"]

    @pytest.mark.asyncio
    async def test_reregister_preserves_first_seen(self, presence: PresenceRegistry, clock) -> None:
        await presence.register({"id": "abc", "os": "Windows"})
        first = clock.now
        clock.advance(5_000)
        await presence.register({"id": "abc", "os": "Windows 11"})
        record = await presence.get("abc")
        assert record is not None
        assert record.first_seen == first
        assert record.last_seen == first + 5_000
        assert record.os == "Windows 11"

    @pytest.mark.asyncio
    async def test_blank_id_rejected(self, presence: PresenceRegistry, store: MemoryStore) -> None:
        with pytest.raises(InvalidRequestError):
            await presence.register({"id": "  "})
        with pytest.raises(InvalidRequestError):
            await presence.register({})
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_concurrent_registrations_all_indexed(self, slow_store: MemoryStore, clock) -> None:
        registry = PresenceRegistry(slow_store, clock=clock)
        ids = [f"t{n}" for n in range(10)]
        await asyncio.gather(*(registry.register({"id": i}) for i in ids))
        assert sorted(await slow_store.get_json(ACTIVE_TARGETS)) == ids


class TestPresence:
    @pytest.mark.asyncio
    async def test_goes_offline_after_window(self, presence: PresenceRegistry, clock) -> None:
        await presence.register({"id": "abc"})
        clock.advance(130_000)
        targets = await presence.list()
        assert targets[0].online is False

    @pytest.mark.asyncio
    async def test_boundary_is_strict(self, presence: PresenceRegistry, clock) -> None:
        await presence.register({"id": "abc"})
        clock.advance(119_999)
        assert (await presence.list())[0].online is True
        clock.advance(1)
        assert (await presence.list())[0].online is False

    @pytest.mark.asyncio
    async def test_heartbeat_bumps_last_seen(self, presence: PresenceRegistry, clock) -> None:
        await presence.register({"id": "abc"})
        clock.advance(130_000)
        assert await presence.heartbeat("abc") is True
        record = await presence.get("abc")
        assert record is not None
        assert record.last_seen == clock.now
        assert record.online is True

    @pytest.mark.asyncio
    async def test_heartbeat_unknown_is_noop(
        self, presence: PresenceRegistry, store: MemoryStore
    ) -> None:
        assert await presence.heartbeat("ghost") is False
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_get_unknown(self, presence: PresenceRegistry) -> None:
        assert await presence.get("ghost") is None


class TestList:
    @pytest.mark.asyncio
    async def test_sorted_newest_first_then_id(self, presence: PresenceRegistry, clock) -> None:
        await presence.register({"id": "old"})
        clock.advance(1_000)
        await presence.register({"id": "b"})
        await presence.register({"id": "a"})
        assert [t.id for t in await presence.list()] == ["a", "b", "old"]

    @pytest.mark.asyncio
    async def test_indexed_id_without_record_skipped(
        self, presence: PresenceRegistry, store: MemoryStore
    ) -> None:
        await presence.register({"id": "abc"})
        await store.set_json(ACTIVE_TARGETS, ["abc", "vanished"])
        assert [t.id for t in await presence.list()] == ["abc"]

    @pytest.mark.asyncio
    async def test_empty(self, presence: PresenceRegistry) -> None:
        assert await presence.list() == []


class TestRetire:
    @pytest.mark.asyncio
    async def test_retire_removes_record_and_index(
        self, presence: PresenceRegistry, store: MemoryStore
    ) -> None:
        await presence.register({"id": "abc"})
        await presence.register({"id": "keep"})
        assert await presence.retire("abc") is True
        assert await store.get(target_key("abc")) is None
        assert await store.get_json(ACTIVE_TARGETS) == ["keep"]

    @pytest.mark.asyncio
    async def test_retire_unknown(self, presence: PresenceRegistry) -> None:
        assert await presence.retire("ghost") is False

    @pytest.mark.asyncio
    async def test_unindexed_before_record_deleted(
        self, presence: PresenceRegistry, store: MemoryStore
    ) -> None:
        await presence.register({"id": "abc"})
        await presence.register({"id": "def"})
        index_at_delete: list = []
        real_delete = store.delete

        async def recording_delete(key: str) -> None:
            if key == target_key("abc"):
                index_at_delete.append(await store.get_json(ACTIVE_TARGETS))
            await real_delete(key)

        store.delete = recording_delete
        assert await presence.retire("abc") is True
        assert index_at_delete == [["def"]]
        assert [t.id for t in await presence.list()] == ["def"]
