"""Command-line interface for remotedesk.

Provides the entry point for running the relay server and a few
controller-side helpers for inspecting and driving a running relay.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="remotedesk",
        description="Stateless remote screen and input relay",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/remotedesk.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--url", type=str, default=None,
        help="Relay base URL for client commands (overrides client.base_url)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the relay HTTP server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    subparsers.add_parser("targets", help="List registered targets")

    commands_parser = subparsers.add_parser("commands", help="Show pending commands for a target")
    commands_parser.add_argument("target", type=str, help="Target id")

    send_parser = subparsers.add_parser("send", help="Queue a command for a target")
    send_parser.add_argument("target", type=str, help="Target id")
    send_parser.add_argument(
        "type", type=str,
        choices=["mouse", "keyboard", "system", "advanced", "execute", "files"],
        help="Command type",
    )
    send_parser.add_argument(
        "data", type=str,
        help='Command data as JSON, e.g. \'{"action": "type", "text": "hello"}\'',
    )

    return parser.parse_args(argv)


def _format_time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


async def _show_targets(base_url: str, timeout: float) -> None:
    from remotedesk.client import RelayClient

    async with RelayClient(base_url=base_url, timeout=timeout) as relay:
        targets = await relay.list_targets()

    if not targets:
        print("No targets registered.")
        return
    print(f"{'ID':<24} {'STATUS':<8} {'USER':<16} {'HOST':<20} {'OS':<16} LAST SEEN")
    for t in targets:
        status = "online" if t.online else "offline"
        print(
            f"{t.id:<24} {status:<8} {t.username:<16} {t.hostname:<20} {t.os:<16} "
            f"{_format_time(t.last_seen)}"
        )


async def _show_commands(base_url: str, timeout: float, target_id: str) -> None:
    from remotedesk.client import RelayClient

    async with RelayClient(base_url=base_url, timeout=timeout) as relay:
        commands = await relay.list_commands(target_id)

    if not commands:
        print(f"No pending commands for {target_id}.")
        return
    for c in commands:
        print(f"[{_format_time(c.timestamp)}] {c.id} {c.type.value}: {json.dumps(c.data)}")


async def _send(base_url: str, timeout: float, target_id: str, command_type: str, data: str) -> None:
    from remotedesk.client import RelayClient

    try:
        payload = json.loads(data)
    except ValueError as e:
        print(f"Invalid JSON for command data: {e}", file=sys.stderr)
        sys.exit(2)

    async with RelayClient(base_url=base_url, timeout=timeout) as relay:
        command_id = await relay.send_command(target_id, {"type": command_type, "data": payload})
    print(f"Queued {command_type} command {command_id} for {target_id}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the remotedesk CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from remotedesk.config.settings import load_settings
    from remotedesk.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    base_url = args.url or settings.client.base_url
    timeout = settings.client.timeout

    if args.command == "serve":
        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        logger.info(
            "Starting relay on %s:%d (store=%s)",
            settings.server.host, settings.server.port, settings.store.backend,
        )
        from remotedesk.api.server import main as serve

        serve(settings)

    elif args.command == "targets":
        asyncio.run(_show_targets(base_url, timeout))

    elif args.command == "commands":
        asyncio.run(_show_commands(base_url, timeout, args.target))

    elif args.command == "send":
        asyncio.run(_send(base_url, timeout, args.target, args.type, args.data))


if __name__ == "__main__":
    main()
