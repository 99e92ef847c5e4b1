"""
Exception hierarchy for roomchat.

``InvalidRequest`` and ``UnknownTool`` are raised at the tool boundary and
handled inside the conversation loop. ``TransportFailure`` and its
subclasses end an orchestration run and propagate to the caller.
"""

from __future__ import annotations


class RoomChatError(Exception):
    """Base exception for all roomchat errors."""


class InvalidRequest(RoomChatError):
    """Raised when tool arguments or a query violate the declared contract."""


class UnknownTool(RoomChatError):
    """Raised when the model asks for a tool that is not registered.

    Attributes:
        name: The tool name the model requested.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name!r}")
        self.name = name


# ---------------------------------------------------------------------------
# Model transport failures
# ---------------------------------------------------------------------------


class TransportFailure(RoomChatError):
    """Base exception for a failed round trip to the model endpoint."""


class TransportRateLimitError(TransportFailure):
    """Raised when the model API returns a rate-limit (429) response."""


class TransportConnectionError(TransportFailure):
    """Raised when the model API endpoint cannot be reached."""


class TransportAPIError(TransportFailure):
    """Raised for other model API errors (e.g., 5xx, authentication failures).

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(TransportFailure):
    """Raised when the model API answers with a payload the loop cannot use."""


class RoundTripLimitExceeded(RuntimeError):
    """Raised when the model never produces a final answer within the round-trip cap."""
