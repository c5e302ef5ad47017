"""Pydantic schemas for the HTTP and WebSocket API."""

from wagerfeed.schemas.bet import (
    BetCreate,
    BetDetail,
    BetSummary,
    BetUpdate,
    CreatorSummary,
    PlacementCreate,
    PlacementResponse,
    SettlementResponse,
    SettleRequest,
)
from wagerfeed.schemas.common import BaseSchema, ErrorResponse
from wagerfeed.schemas.user import HistoryItem, ProfileResponse, ProfileUpdate
from wagerfeed.schemas.websocket import (
    WSClientAction,
    WSClientMessage,
    WSErrorMessage,
    WSNotificationMessage,
    WSServerMessageType,
)

__all__ = [
    "BaseSchema",
    "ErrorResponse",
    "BetCreate",
    "BetDetail",
    "BetSummary",
    "BetUpdate",
    "CreatorSummary",
    "PlacementCreate",
    "PlacementResponse",
    "SettlementResponse",
    "SettleRequest",
    "HistoryItem",
    "ProfileResponse",
    "ProfileUpdate",
    "WSClientAction",
    "WSClientMessage",
    "WSErrorMessage",
    "WSNotificationMessage",
    "WSServerMessageType",
]
