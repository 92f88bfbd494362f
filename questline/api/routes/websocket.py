"""
WebSocket API for real-time onboarding progress.

Clients connect to /ws/onboarding?user_id=... and receive:
- the current progress snapshot right after connecting (if initialized)
- a new snapshot after every successful transition

Messages are {"type": "progress", "progress": {...}}. Clients may send
{"action": "ping"} to keep the connection alive.

Architecture:
- Each connection subscribes to the process-wide notification port
- With Redis enabled, the port's Pub/Sub listener feeds snapshots
  published by other workers into the same subscriptions
"""
import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from questline.api.deps import get_notifications
from questline.schemas.progress import OnboardingProgress
from questline.services.notifications import NotificationPort

logger = structlog.get_logger()

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """
    Tracks open WebSocket connections per user.
    """

    def __init__(self):
        # Map of user_id -> set of connections
        self.connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def connection_count(self, user_id: str | None = None) -> int:
        if user_id is not None:
            return len(self.connections.get(user_id, set()))
        return sum(len(sockets) for sockets in self.connections.values())

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept a new WebSocket connection for a user."""
        await websocket.accept()

        async with self._lock:
            self.connections[user_id].add(websocket)

        logger.info("WebSocket connected", user_id=user_id)

    async def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        async with self._lock:
            sockets = self.connections.get(user_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self.connections[user_id]

        logger.info("WebSocket disconnected", user_id=user_id)

    async def send_progress(self, websocket: WebSocket, progress: OnboardingProgress) -> None:
        await self._send(websocket, {
            "type": "progress",
            "progress": progress.model_dump(mode="json"),
            "timestamp": _timestamp(),
        })

    async def _send(self, websocket: WebSocket, message: dict[str, Any]) -> None:
        """Send a message to a WebSocket connection."""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning("WebSocket send failed", error=str(e))
            raise

    async def _send_error(self, websocket: WebSocket, error: str) -> None:
        await self._send(websocket, {
            "type": "error",
            "error": error,
            "timestamp": _timestamp(),
        })


# Global connection manager instance
manager = ConnectionManager()


@router.websocket("/ws/onboarding")
async def onboarding_websocket(
    websocket: WebSocket,
    user_id: str = Query(..., min_length=1),
    notifications: NotificationPort = Depends(get_notifications),
):
    """
    WebSocket endpoint streaming a user's onboarding progress.

    Ping:
    {"action": "ping"} -> {"type": "pong", ...}
    """
    await manager.connect(websocket, user_id)

    async def forward(progress: OnboardingProgress) -> None:
        await manager.send_progress(websocket, progress)

    unsubscribe = await notifications.subscribe(user_id, forward)

    try:
        while True:
            data = await websocket.receive_json()
            action = data.get("action") if isinstance(data, dict) else None

            if action == "ping":
                await manager._send(websocket, {
                    "type": "pong",
                    "timestamp": _timestamp(),
                })
            else:
                await manager._send_error(websocket, f"Unknown action: {action}")

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("WebSocket error", user_id=user_id, error=str(e))
    finally:
        unsubscribe()
        await manager.disconnect(websocket, user_id)
