"""Error taxonomy shared by the relay components and the HTTP layer."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors a relay operation reports to its caller."""


class NotFoundError(RelayError):
    """The requested data has never been produced, or has been cleared."""

    status = "not_found"


class ExpiredError(NotFoundError):
    """The data existed but aged out before it was read."""

    status = "expired"


class InvalidRequestError(RelayError):
    """Required input is missing or malformed."""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field
