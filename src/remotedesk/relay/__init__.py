"""Relay components built directly on the shared key-value store.

Public API:
    PresenceRegistry -- target records and the active-target index
    ScreenRelay -- latest frame per target with expiry on read
    CommandQueue -- per-target FIFO of pending commands
"""

from remotedesk.relay.commands import CommandQueue
from remotedesk.relay.presence import PresenceRegistry
from remotedesk.relay.screen import ScreenRelay

__all__ = ["CommandQueue", "PresenceRegistry", "ScreenRelay"]
