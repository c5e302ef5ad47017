"""API route modules."""

from wagerfeed.api.routes.bets import router as bets_router
from wagerfeed.api.routes.user import router as user_router
from wagerfeed.api.routes.websocket import router as websocket_router

__all__ = [
    "bets_router",
    "user_router",
    "websocket_router",
]
