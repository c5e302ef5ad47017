"""WebSocket connections bridged onto the notification hub."""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import WebSocket

from wagerfeed.models import TopicKind
from wagerfeed.schemas import WSNotificationMessage, WSServerMessageType
from wagerfeed.services.notifications import NotificationHub, Subscription, TopicKey

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    TopicKind.STATS: WSServerMessageType.STATS_UPDATED,
    TopicKind.METADATA: WSServerMessageType.BET_UPDATED,
}


class ConnectionManager:
    """Manages WebSocket connections and their topic subscriptions.

    Each subscription gets a forwarding task that relays hub notifications to
    the socket. Disconnecting cancels the tasks and detaches from the hub.
    """

    def __init__(self, hub: NotificationHub):
        self.hub = hub
        self.active_connections: list[WebSocket] = []
        # websocket -> topic -> (subscription, forwarding task)
        self.connection_info: dict[WebSocket, dict[TopicKey, tuple[Subscription, asyncio.Task]]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)
        self.connection_info[websocket] = {}
        logger.info(f"WebSocket connected. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket) -> None:
        """Drop a connection and every subscription it holds."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

        for subscription, task in self.connection_info.pop(websocket, {}).values():
            subscription.close()
            task.cancel()

        logger.info(f"WebSocket disconnected. Total: {len(self.active_connections)}")

    def subscribe(self, websocket: WebSocket, bet_id: str, kind: TopicKind) -> bool:
        """Attach the connection to a topic; False if it was already attached."""
        topics = self.connection_info.setdefault(websocket, {})
        key = (bet_id, kind)
        if key in topics:
            return False
        subscription = self.hub.subscribe(bet_id, kind)
        task = asyncio.create_task(self._forward(websocket, subscription))
        topics[key] = (subscription, task)
        return True

    def unsubscribe(self, websocket: WebSocket, bet_id: str, kind: TopicKind) -> bool:
        topics = self.connection_info.get(websocket, {})
        entry = topics.pop((bet_id, kind), None)
        if entry is None:
            return False
        subscription, task = entry
        subscription.close()
        task.cancel()
        return True

    async def _forward(self, websocket: WebSocket, subscription: Subscription) -> None:
        async for notification in subscription:
            message = WSNotificationMessage(
                type=_MESSAGE_TYPES[notification.kind],
                bet_id=notification.bet_id,
                timestamp=notification.published_at,
            )
            try:
                await websocket.send_json(message.model_dump(mode="json"))
            except Exception as e:
                logger.warning(f"Failed to send to websocket: {e}")
                self.disconnect(websocket)
                return

    def get_total_connections(self) -> int:
        """Get total number of active connections."""
        return len(self.active_connections)

    def stats(self) -> dict:
        return {
            "total_connections": self.get_total_connections(),
            "subscriptions": self.hub.snapshot(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
