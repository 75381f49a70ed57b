"""Shared test fixtures for the remotedesk test suite.

Provides a controllable clock, in-memory stores, relay components wired
to both, and sample payloads.
"""

from __future__ import annotations

import pytest

from remotedesk.domain.models import KeyboardCommand, MouseCommand
from remotedesk.relay import CommandQueue, PresenceRegistry, ScreenRelay
from remotedesk.store.memory import MemoryStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


# ---------------------------------------------------------------------------
# Store / clock fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def slow_store() -> MemoryStore:
    """A store whose calls suspend long enough for gathered tasks to interleave."""
    return MemoryStore(latency=0.001, max_attempts=64)


# ---------------------------------------------------------------------------
# Relay component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def presence(store: MemoryStore, clock: FakeClock) -> PresenceRegistry:
    return PresenceRegistry(store, clock=clock)


@pytest.fixture
def screen(store: MemoryStore, presence: PresenceRegistry, clock: FakeClock) -> ScreenRelay:
    return ScreenRelay(store, presence=presence, clock=clock)


@pytest.fixture
def commands(store: MemoryStore, clock: FakeClock) -> CommandQueue:
    return CommandQueue(store, clock=clock)


# ---------------------------------------------------------------------------
# Payload fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def frame_payload() -> str:
    """A 120-character stand-in for a base64 JPEG."""
    return "/9j/" + "A" * 116


@pytest.fixture
def click_command() -> MouseCommand:
    return MouseCommand.model_validate(
        {"type": "mouse", "data": {"action": "click", "button": "left", "x": 0.5, "y": 0.5}}
    )


@pytest.fixture
def type_command() -> KeyboardCommand:
    return KeyboardCommand.model_validate(
        {"type": "keyboard", "data": {"action": "type", "text": "hello"}}
    )
