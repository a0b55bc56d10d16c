from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

import anyio
from fastapi import APIRouter, Query, WebSocket
from starlette.websockets import WebSocketState

from ..auth_utils import authenticate, decode_basic_token
from ..constants import WS_CLOSE_BAD_CREDENTIALS
from ..coordinator import LobbyCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


class WebSocketConnection:
    """Adapts a Starlette ``WebSocket`` to the registry's connection protocol."""

    def __init__(self, ws: WebSocket, authenticated_user_id: Optional[str] = None):
        self.ws = ws
        self.connection_id = uuid.uuid4().hex
        self.authenticated_user_id = authenticated_user_id

    @property
    def is_open(self) -> bool:
        return (
            self.ws.client_state == WebSocketState.CONNECTED
            and self.ws.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.ws.send_json(payload)


@router.websocket("/ws")
async def lobby_ws_endpoint(ws: WebSocket, auth: Optional[str] = Query(default=None)):
    await ws.accept()
    coordinator: LobbyCoordinator = ws.app.state.coordinator

    user_id: Optional[str] = None
    if auth:
        credentials = decode_basic_token(auth)
        user = await authenticate(coordinator.repository, *credentials) if credentials else None
        if user is None:
            await ws.close(code=WS_CLOSE_BAD_CREDENTIALS)
            return
        user_id = user.id

    connection = WebSocketConnection(ws, authenticated_user_id=user_id)
    logger.info("WebSocket connection %s opened", connection.connection_id)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await coordinator.handle_message(connection, raw)
    except Exception:
        logger.exception("WebSocket error on connection %s", connection.connection_id)
    finally:
        # Cleanup must finish even when the connection task is being cancelled
        with anyio.CancelScope(shield=True):
            await coordinator.disconnect(connection)
        logger.info("WebSocket connection %s closed", connection.connection_id)
