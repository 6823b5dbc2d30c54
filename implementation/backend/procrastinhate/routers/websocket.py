"""WebSocket endpoint for real-time server-push events.

Provides:
- ``WS /ws``: accepts every socket, then waits for an ``AUTHENTICATION``
  handshake before registering it in the ``ConnectionRegistry``.

Per-socket lifecycle: unauthenticated -> authenticated -> closed. Protocol
errors are answered with a plain text frame and never close the socket.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from procrastinhate.config import get_settings
from procrastinhate.services import auth_service, notification_service, ws_messages
from procrastinhate.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


async def _authenticate(
    websocket: WebSocket, registry: ConnectionRegistry, authentication: object
) -> None:
    if not isinstance(authentication, dict):
        await websocket.send_text(ws_messages.INVALID_AUTHENTICATION)
        return

    identity = authentication.get("_id")
    token = authentication.get("token")
    if not identity or not token or not isinstance(identity, str) or not isinstance(token, str):
        logger.info("Rejected handshake without identity or token")
        await websocket.send_json(ws_messages.authentication_result(success=False))
        return

    if registry.find_by_socket(websocket) is not None:
        logger.info("Rejected repeated handshake from %s on an authenticated socket", identity)
        await websocket.send_json(ws_messages.authentication_result(success=False))
        return

    db = websocket.app.state.db
    if get_settings().ws_verify_tokens:
        if await auth_service.validate_user_token(db, identity, token) is None:
            logger.info("Rejected handshake from %s: token not recognised", identity)
            await websocket.send_json(ws_messages.authentication_result(success=False))
            return

    is_service_worker = authentication.get("serviceWorker") is True
    registry.register(identity, token, websocket, is_service_worker=is_service_worker)
    await websocket.send_json(ws_messages.authentication_result(success=True))

    if not is_service_worker:
        await notification_service.refresh_presence(db, registry, identity)


async def _handle_text(websocket: WebSocket, registry: ConnectionRegistry, text: str) -> None:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None
    if not isinstance(payload, dict):
        await websocket.send_text(ws_messages.INVALID_MESSAGE)
        return

    if payload.get("type") != ws_messages.AUTHENTICATION:
        await websocket.send_text(ws_messages.UNKNOWN_MESSAGE_TYPE)
        return

    await _authenticate(websocket, registry, payload.get("authentication"))


# ---------------------------------------------------------------------------
# WS /ws
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept, run the receive loop, unregister on close.

    Flow:
    1. Accept connection (unauthenticated)
    2. Text frames: JSON handshake or protocol error reply
    3. Binary frames: rejected with a text reply
    4. On disconnect: unregister and refresh collaborator presence
    """
    registry: ConnectionRegistry = websocket.app.state.connection_registry

    await websocket.accept()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            text = message.get("text")
            if text is None:
                await websocket.send_text(ws_messages.BINARY_NOT_SUPPORTED)
                continue
            await _handle_text(websocket, registry, text)
    except WebSocketDisconnect:
        pass
    finally:
        # --- Cleanup ---
        record = registry.unregister(websocket)
        if record is not None and not record.is_service_worker:
            await notification_service.refresh_presence(
                websocket.app.state.db, registry, record.identity
            )
