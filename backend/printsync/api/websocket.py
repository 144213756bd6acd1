import asyncio
import json
from datetime import datetime, timezone
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()

KEEPALIVE_INTERVAL = 30.0


def _encode(event_type: str, data: dict) -> str:
    return json.dumps({
        "type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }, default=str)


class ConnectionManager:
    """Tracks WebSocket clients following sync passes."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        self.active_connections.discard(websocket)

    async def broadcast(self, event_type: str, data: dict):
        """Send a timestamped event to every client, dropping the ones that are gone."""
        message = _encode(event_type, data)

        disconnected = set()
        for connection in self.active_connections:
            try:
                await connection.send_text(message)
            except Exception:
                disconnected.add(connection)

        self.active_connections -= disconnected

    async def send_personal(self, websocket: WebSocket, event_type: str, data: dict):
        await websocket.send_text(_encode(event_type, data))


manager = ConnectionManager()


async def sync_callback(event_type: str, data: dict):
    """Orchestrator callback: sync_started, printer_resolved, sync_completed, sync_failed."""
    await manager.broadcast(event_type, data)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Live feed of sync passes; a new client first gets the current state."""
    await manager.connect(websocket)
    orchestrator = websocket.app.state.orchestrator

    try:
        last = orchestrator.last_result
        await manager.send_personal(websocket, "connected", {
            "syncing": orchestrator.is_syncing,
            "scheduler_running": orchestrator.is_running,
            "last_result": last.summary() if last else None,
        })

        while True:
            try:
                raw = await asyncio.wait_for(websocket.receive_text(), timeout=KEEPALIVE_INTERVAL)
            except asyncio.TimeoutError:
                try:
                    await manager.send_personal(websocket, "ping", {})
                except Exception:
                    break
                continue

            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await manager.send_personal(websocket, "pong", {})

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
