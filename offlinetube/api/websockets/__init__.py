"""WebSocket endpoints."""

from .queue_updates import router as websocket_router

__all__ = ["websocket_router"]
