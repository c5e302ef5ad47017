"""WebSocket Pydantic schemas."""

from datetime import datetime
from enum import Enum

from wagerfeed.models import TopicKind
from wagerfeed.schemas.common import BaseSchema


class WSClientAction(str, Enum):
    """Client WebSocket actions."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class WSServerMessageType(str, Enum):
    """Server WebSocket message types."""

    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    STATS_UPDATED = "stats_updated"
    BET_UPDATED = "bet_updated"
    ERROR = "error"


class WSClientMessage(BaseSchema):
    """Message from client to server."""

    action: WSClientAction
    bet_id: str
    kind: TopicKind = TopicKind.STATS


class WSNotificationMessage(BaseSchema):
    """Cue to re-fetch a bet's stats or metadata; carries no state."""

    type: WSServerMessageType
    bet_id: str
    timestamp: datetime


class WSErrorMessage(BaseSchema):
    """Error message."""

    type: WSServerMessageType = WSServerMessageType.ERROR
    message: str
    code: str | None = None
