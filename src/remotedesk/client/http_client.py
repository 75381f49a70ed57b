"""HTTP client for the relay API.

Used by agents (register, heartbeat, push frames, poll and ack commands)
and by controllers (list targets, pull frames, send commands).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter

from remotedesk.domain.models import Command, CommandPayload, ScreenFrame, TargetRecord

logger = logging.getLogger(__name__)

_targets = TypeAdapter(list[TargetRecord])
_commands = TypeAdapter(list[Command])
_payload = TypeAdapter(CommandPayload)


class RelayClient:
    """Async client for the relay HTTP API.

    Example usage::

        async with RelayClient(base_url="http://relay:8080") as relay:
            await relay.register("abc", username="bob")
            for command in await relay.list_commands("abc"):
                execute(command)
                await relay.ack_command("abc", command.id)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client and verify the relay is reachable."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            logger.info("Connected to relay at %s", self._base_url)
        except Exception as e:
            await self._client.aclose()
            self._client = None
            raise RelayClientError(f"Failed to connect to relay: {e}") from e

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Disconnected from relay")

    # -- agent side ---------------------------------------------------------

    async def register(self, target_id: str, **info: str) -> str:
        data = await self._request("POST", "/api/register", {"target_id": target_id, **info})
        return data["target_id"]

    async def heartbeat(self, target_id: str) -> bool:
        """Returns whether the relay knew the target."""
        data = await self._request("POST", f"/api/heartbeat/{target_id}")
        return bool(data.get("known", True))

    async def push_screen(self, target_id: str, screen: str, quality: int | None = None) -> None:
        payload: dict[str, Any] = {"screen": screen}
        if quality is not None:
            payload["quality"] = quality
        await self._request("POST", f"/api/screen/{target_id}", payload)

    async def list_commands(self, target_id: str) -> list[Command]:
        data = await self._request("GET", f"/api/commands/{target_id}")
        return _commands.validate_python(data)

    async def ack_command(self, target_id: str, command_id: str) -> None:
        await self._request(
            "POST", "/api/command_done", {"target_id": target_id, "command_id": command_id}
        )

    # -- controller side ----------------------------------------------------

    async def list_targets(self) -> list[TargetRecord]:
        data = await self._request("GET", "/api/targets")
        return _targets.validate_python(data)

    async def pull_screen(self, target_id: str) -> ScreenFrame:
        """Fetch the target's latest frame.

        Raises:
            ScreenUnavailableError: If no frame was pushed or it expired.
        """
        data = await self._request("GET", f"/api/screen/{target_id}")
        return ScreenFrame(target_id=target_id, **data)

    async def send_command(self, target_id: str, command: CommandPayload | dict[str, Any]) -> str:
        """Queue a command; plain dicts are validated locally first."""
        if isinstance(command, dict):
            command = _payload.validate_python(command)
        data = await self._request(
            "POST",
            "/api/commands",
            {"target_id": target_id, "command": command.model_dump(mode="json", exclude_none=True)},
        )
        return data["command_id"]

    async def retire(self, target_id: str) -> bool:
        data = await self._request("POST", f"/api/retire/{target_id}")
        return bool(data.get("known"))

    async def _request(self, method: str, path: str, payload: dict | None = None) -> Any:
        """Send a request to the relay and decode the JSON body."""
        if self._client is None:
            raise RelayClientError("Not connected to relay")
        try:
            resp = await self._client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise RelayClientError(f"HTTP request to {path} failed: {e}") from e

        if resp.is_error:
            body = _error_body(resp)
            if (
                resp.status_code == 404
                and method == "GET"
                and path.startswith("/api/screen/")
                and "status" in body
            ):
                raise ScreenUnavailableError(
                    body.get("error", "No screen data"), reason=body["status"]
                )
            message = body.get("error", resp.text)
            raise RelayClientError(
                f"{method} {path} returned {resp.status_code}: {message}", status_code=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as e:
            raise RelayClientError(
                f"{method} {path} returned a non-JSON body", status_code=resp.status_code
            ) from e

    async def __aenter__(self) -> RelayClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()


def _error_body(resp: httpx.Response) -> dict:
    """Decode a relay error envelope; proxies may answer with text or HTML."""
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class RelayClientError(Exception):
    """Raised when a relay request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScreenUnavailableError(RelayClientError):
    """Raised when the relay has no live frame for a target."""

    def __init__(self, message: str, reason: str = "not_found") -> None:
        super().__init__(message, status_code=404)
        self.reason = reason
