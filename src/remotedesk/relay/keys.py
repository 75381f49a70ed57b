"""Logical key layout of the shared store."""

from __future__ import annotations

ACTIVE_TARGETS = "active_targets"


def target_key(target_id: str) -> str:
    return f"target:{target_id}"


def screen_key(target_id: str) -> str:
    return f"screen:{target_id}"


def queue_key(target_id: str) -> str:
    return f"queue:{target_id}"


def command_key(target_id: str, command_id: str) -> str:
    return f"command:{target_id}:{command_id}"
