"""WebSocket API routes."""

import json
import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from wagerfeed.schemas import (
    WSClientAction,
    WSClientMessage,
    WSErrorMessage,
    WSServerMessageType,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


async def _send_error(websocket: WebSocket, message: str, code: str) -> None:
    await websocket.send_json(WSErrorMessage(message=message, code=code).model_dump(mode="json"))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Live change cues for individual bets.

    Client sends:
    - {"action": "subscribe", "bet_id": "...", "kind": "stats" | "metadata"}
    - {"action": "unsubscribe", "bet_id": "...", "kind": "stats" | "metadata"}

    Server sends:
    - {"type": "subscribed" | "unsubscribed", "bet_id": "...", "kind": "..."}
    - {"type": "stats_updated", "bet_id": "...", "timestamp": "..."}
    - {"type": "bet_updated", "bet_id": "...", "timestamp": "..."}
    - {"type": "error", "message": "...", "code": "..."}

    Updates carry no data; clients re-fetch the bet when one arrives.
    """
    manager = websocket.app.state.container.connections
    await manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                raw = json.loads(data)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid JSON", "INVALID_JSON")
                continue

            if not isinstance(raw, dict) or not raw.get("action") or not raw.get("bet_id"):
                await _send_error(websocket, "Missing action or bet_id", "INVALID_MESSAGE")
                continue

            try:
                message = WSClientMessage.model_validate(raw)
            except ValidationError:
                action = raw.get("action")
                if action not in {a.value for a in WSClientAction}:
                    await _send_error(websocket, f"Unknown action: {action}", "UNKNOWN_ACTION")
                else:
                    await _send_error(websocket, "Invalid subscription kind", "INVALID_KIND")
                continue

            if message.action == WSClientAction.SUBSCRIBE:
                manager.subscribe(websocket, message.bet_id, message.kind)
                reply = WSServerMessageType.SUBSCRIBED
            else:
                manager.unsubscribe(websocket, message.bet_id, message.kind)
                reply = WSServerMessageType.UNSUBSCRIBED

            await websocket.send_json({
                "type": reply.value,
                "bet_id": message.bet_id,
                "kind": message.kind.value,
            })
            logger.debug(f"Client {reply.value} {message.kind.value} for bet {message.bet_id}")

    except WebSocketDisconnect:
        manager.disconnect(websocket)
        logger.debug("WebSocket disconnected")

    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(websocket)


@router.get("/ws/stats")
async def get_websocket_stats(request: Request):
    """Get WebSocket connection statistics."""
    return request.app.state.container.connections.stats()
