"""Domain models for remotedesk.

This package contains the records kept in the shared store and the
error taxonomy used across components. All models use Pydantic v2 for
validation and serialization.
"""

from remotedesk.domain.errors import (
    ExpiredError,
    InvalidRequestError,
    NotFoundError,
    RelayError,
)
from remotedesk.domain.models import (
    Command,
    CommandPayload,
    CommandStatus,
    CommandType,
    ScreenFrame,
    TargetRecord,
)

__all__ = [
    "Command",
    "CommandPayload",
    "CommandStatus",
    "CommandType",
    "ExpiredError",
    "InvalidRequestError",
    "NotFoundError",
    "RelayError",
    "ScreenFrame",
    "TargetRecord",
]
