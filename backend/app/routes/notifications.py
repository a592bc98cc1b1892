import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.events import ControlEvent
from app.services.realtime import WebSocketClient

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/events")
async def events_ws(websocket: WebSocket):
    """
    Live event stream. Clients send ``{"action": "join" | "leave",
    "organizationId": "..."}`` and receive ``{"event": ..., "data": ...}``
    frames for every organization room they are in.
    """
    broadcaster = getattr(websocket.app.state, "broadcaster", None)
    await websocket.accept()
    client = WebSocketClient(websocket)
    client.start()
    logger.info("websocket connected", extra={"client_id": client.client_id})
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("ignoring malformed websocket message", extra={"client_id": client.client_id})
                client.send(ControlEvent.ERROR.value, {"message": "Malformed message"})
                continue
            if not isinstance(message, dict):
                client.send(ControlEvent.ERROR.value, {"message": "Malformed message"})
                continue

            action = message.get("action")
            organization_id = message.get("organizationId")
            if action not in ("join", "leave") or not isinstance(organization_id, str) or not organization_id:
                logger.warning(
                    "ignoring unknown websocket action",
                    extra={"client_id": client.client_id, "action": action},
                )
                client.send(ControlEvent.ERROR.value, {"message": "Unknown action"})
                continue
            if broadcaster is None:
                client.send(ControlEvent.ERROR.value, {"message": "Live updates unavailable"})
                continue

            if action == "join":
                broadcaster.join(organization_id, client)
                client.send(ControlEvent.ROOM_JOINED.value, {"organizationId": organization_id})
            else:
                broadcaster.leave(organization_id, client)
                client.send(ControlEvent.ROOM_LEFT.value, {"organizationId": organization_id})
    except WebSocketDisconnect:
        pass
    finally:
        rooms = broadcaster.disconnect(client) if broadcaster is not None else []
        await client.close()
        logger.info("websocket disconnected", extra={"client_id": client.client_id, "rooms": rooms})
