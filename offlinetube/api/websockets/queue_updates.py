"""
WebSocket endpoint pushing queue snapshots and notifications.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from ...config.logging_config import get_logger
from ...core.models import Notification, QueueState
from ...services.queue_service import QueueService

logger = get_logger(__name__)
router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Tracks open queue connections and their outgoing message buffers."""

    def __init__(self):
        self.active_connections: Dict[str, asyncio.Queue] = {}

    def connect(self, connection_id: str) -> asyncio.Queue:
        outbox: asyncio.Queue = asyncio.Queue()
        self.active_connections[connection_id] = outbox
        logger.info(
            "WebSocket connection established",
            extra={"connection_id": connection_id, "total_connections": self.get_total_connections()}
        )
        return outbox

    def disconnect(self, connection_id: str) -> None:
        self.active_connections.pop(connection_id, None)
        logger.info(
            "WebSocket connection closed",
            extra={"connection_id": connection_id, "total_connections": self.get_total_connections()}
        )

    def get_total_connections(self) -> int:
        return len(self.active_connections)


manager = ConnectionManager()


def snapshot_message(service: QueueService, state: QueueState) -> Dict[str, Any]:
    return {"type": "snapshot", "timestamp": _timestamp(), **service.snapshot(state)}


def notification_message(notification: Notification) -> Dict[str, Any]:
    return {"type": "notification", "timestamp": _timestamp(), **notification.to_dict()}


async def _pump(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    while True:
        message = await outbox.get()
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        await websocket.send_text(json.dumps(message))


@router.websocket("/queue")
async def queue_updates_endpoint(websocket: WebSocket):
    """
    Stream queue changes.

    The first message is the current snapshot; afterwards every store change
    sends a ``snapshot`` message and every outcome a ``notification``. Clients
    may send ``{"type": "ping"}`` or ``{"type": "get_snapshot"}``.
    """
    service: QueueService = websocket.app.state.queue_service
    connection_id = str(uuid.uuid4())

    await websocket.accept()
    outbox = manager.connect(connection_id)
    unsubscribe_state = service.store.subscribe(
        lambda state: outbox.put_nowait(snapshot_message(service, state))
    )
    unsubscribe_notifications = service.subscribe_notifications(
        lambda notification: outbox.put_nowait(notification_message(notification))
    )
    sender = asyncio.create_task(_pump(websocket, outbox))

    try:
        outbox.put_nowait(snapshot_message(service, service.state))

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                outbox.put_nowait({"type": "error", "message": "Invalid JSON format", "timestamp": _timestamp()})
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == "ping":
                outbox.put_nowait({"type": "pong", "timestamp": _timestamp()})
            elif message_type == "get_snapshot":
                outbox.put_nowait(snapshot_message(service, service.state))
            else:
                outbox.put_nowait({
                    "type": "error",
                    "message": f"Unknown message type: {message_type}",
                    "timestamp": _timestamp(),
                })

    except WebSocketDisconnect:
        pass

    finally:
        unsubscribe_state()
        unsubscribe_notifications()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        manager.disconnect(connection_id)
