"""HTTP and WebSocket API."""

from wagerfeed.api.server import create_app

__all__ = ["create_app"]
