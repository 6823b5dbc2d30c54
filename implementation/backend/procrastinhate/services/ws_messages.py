"""WebSocket message factory functions.

Each function returns a plain dict with a ``type`` field plus data fields.
Services call these factories and pass the result to
``ConnectionRegistry.send()``. Protocol errors are answered with plain text
frames, whose bodies are the constants below.
"""

from __future__ import annotations

AUTHENTICATION = "AUTHENTICATION"
UPDATE_DATA = "UPDATE_DATA"
NOTIFICATION = "NOTIFICATION"
COLLABORATOR_UPDATE = "COLLABORATOR_UPDATE"

INVALID_AUTHENTICATION = "Invalid authentication"
UNKNOWN_MESSAGE_TYPE = "Unknown message type"
INVALID_MESSAGE = "Invalid message"
BINARY_NOT_SUPPORTED = "Binary messages are not supported"


def authentication_result(*, success: bool) -> dict:
    """Acknowledgement of an ``AUTHENTICATION`` handshake."""
    return {"type": AUTHENTICATION, "success": success}


def update_data() -> dict:
    """Server state changed, client should refetch."""
    return {"type": UPDATE_DATA}


def notification(*, message: str) -> dict:
    """Human-readable notification text."""
    return {"type": NOTIFICATION, "message": message}


def collaborator_update() -> dict:
    """A collaborator came online or went offline, client should refetch presence."""
    return {"type": COLLABORATOR_UPDATE}
