from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shield_portal.application.ports.auth import TokenVerifier
from shield_portal.config import settings
from shield_portal.infrastructure.ws.gateway import RealtimeGateway

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

CLOSE_AUTH_FAILED = 4001
CLOSE_INTERNAL_ERROR = 1011


async def _authenticate(verifier: TokenVerifier, token: str) -> int | None:
    try:
        principal = await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None
    return principal.subject_id


@router.websocket(settings.WS_PATH)
async def realtime_endpoint(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    """Persistent channel for order updates and notifications.

    A ``token`` on the upgrade request binds the connection to its subject;
    without one the connection starts anonymous.
    """
    gateway: RealtimeGateway = websocket.app.state.gateway

    user_id: int | None = None
    if token is not None:
        user_id = await _authenticate(websocket.app.state.verifier, token)
        if user_id is None:
            await websocket.close(code=CLOSE_AUTH_FAILED, reason="Authentication failed")
            return

    connection_id = await gateway.connect(websocket, user_id)
    try:
        while websocket.application_state == WebSocketState.CONNECTED:
            raw = await websocket.receive_text()
            await gateway.handle_text(connection_id, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", connection_id)
        await _close_after_error(websocket)
    finally:
        gateway.disconnect(connection_id)


async def _close_after_error(websocket: WebSocket) -> None:
    if websocket.application_state != WebSocketState.CONNECTED:
        return
    try:
        await websocket.close(code=CLOSE_INTERNAL_ERROR)
    except RuntimeError:
        logger.debug("WS already closed", exc_info=True)
