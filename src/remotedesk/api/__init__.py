"""HTTP dispatcher for the relay.

Public API:
    create_app -- FastAPI application factory
"""

from remotedesk.api.server import create_app

__all__ = ["create_app"]
