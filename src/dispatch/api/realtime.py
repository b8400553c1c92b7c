"""WebSocket endpoint for the broadcast hub.

Messages in both directions are JSON envelopes ``{"event": ..., "data": ...}``.
The token travels as the ``token`` query parameter or a bearer header.
"""

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from dispatch.identity import bearer_token
from dispatch.realtime.connection import WebSocketConnection
from dispatch.realtime.hub import BroadcastHub

logger = structlog.get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


@realtime_router.websocket("/ws")
async def tracking_socket(websocket: WebSocket, token: str | None = None):
    hub: BroadcastHub = websocket.app.state.hub
    token = token or bearer_token(websocket.headers.get("authorization"))

    await websocket.accept()
    connection = WebSocketConnection(websocket)
    connection.start()
    hub.connect(connection, token)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Malformed client message", connection_id=connection.id)
                continue

            try:
                hub.receive(connection, message)
            except Exception:  # noqa: BLE001
                logger.exception("Client event failed", connection_id=connection.id)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection)
        await connection.close()
