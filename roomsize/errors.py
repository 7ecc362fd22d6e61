"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; one exception handler in main.py turns them into
`{"error": message, ...}` JSON with the matching status code.
"""

from typing import Any


class RoomSizeError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.extra}


class ValidationFailed(RoomSizeError):
    """Malformed or missing required input."""

    status_code = 400


class Unauthorized(RoomSizeError):
    """Admin key mismatch."""

    status_code = 401


class NotFound(RoomSizeError):
    """Referenced entity does not exist."""

    status_code = 404


class Conflict(RoomSizeError):
    """Duplicate of something that must be unique."""

    status_code = 409


class UpstreamError(RoomSizeError):
    """The datastore failed underneath us."""

    status_code = 500
