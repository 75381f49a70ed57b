"""Client module for remotedesk.

Public API:
    RelayClient -- async HTTP client for agents and controllers
    RelayClientError -- raised on transport or HTTP failures
    ScreenUnavailableError -- raised when no live frame exists
"""

from remotedesk.client.http_client import (
    RelayClient,
    RelayClientError,
    ScreenUnavailableError,
)

__all__ = ["RelayClient", "RelayClientError", "ScreenUnavailableError"]
