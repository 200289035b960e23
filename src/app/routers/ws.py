"""WebSocket endpoint for live simulation updates.

The engine publishes on its threaded EventBus; :class:`EventBridge` drains a
subscription on a daemon thread and pushes every message into the asyncio
loop, where :class:`ConnectionManager` fans it out to connected clients.
"""

import asyncio
import json
import queue
import threading
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from airspace.comms.event_bus import EventBus

router = APIRouter(prefix="/ws", tags=["websocket"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionManager:
    """Manages WebSocket connections for live updates."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict):
        """Send a message to every client; drop clients that fail."""
        if not self.active_connections:
            return

        message_str = json.dumps(message)
        disconnected = set()

        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message_str)
                except Exception as e:
                    logger.warning(f"Failed to send to websocket: {e}")
                    disconnected.add(connection)
            self.active_connections -= disconnected

    async def send_to(self, websocket: WebSocket, message: dict):
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.warning(f"Failed to send to websocket: {e}")


manager = ConnectionManager()


@router.websocket("/live")
async def websocket_live(websocket: WebSocket):
    """Stream sim_event and sim_telemetry messages; answer pings."""
    await manager.connect(websocket)
    await manager.send_to(
        websocket,
        {"type": "connected", "timestamp": _timestamp(), "message": "SKYOPTIMA LINK ESTABLISHED"},
    )
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to(websocket, {"type": "error", "message": "Invalid JSON"})
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await manager.send_to(websocket, {"type": "pong", "timestamp": _timestamp()})
    except WebSocketDisconnect:
        await manager.disconnect(websocket)


class EventBridge:
    """Forward EventBus messages into an asyncio loop on a daemon thread.

    Args:
        event_bus: Bus to subscribe to (all topics).
        loop: Running event loop that owns the WebSocket connections.
        broadcast: Coroutine function receiving each forwarded message.
            Defaults to the module connection manager.
    """

    _POLL_S = 0.5

    def __init__(
        self,
        event_bus: EventBus,
        loop: asyncio.AbstractEventLoop,
        broadcast: Optional[Callable[[dict], Awaitable[None]]] = None,
    ):
        self._event_bus = event_bus
        self._loop = loop
        self._broadcast = broadcast or manager.broadcast
        self._sub: Optional[queue.Queue] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._sub = self._event_bus.subscribe()
        self._thread = threading.Thread(target=self._run, name="sim-ws-bridge", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        thread, self._thread = self._thread, None
        self._stop.set()
        if thread is not None:
            thread.join(timeout=2.0)
        if self._sub is not None:
            self._event_bus.unsubscribe(self._sub)
            self._sub = None

    def _run(self) -> None:
        sub = self._sub
        while not self._stop.is_set():
            try:
                msg = sub.get(timeout=self._POLL_S)
            except queue.Empty:
                continue
            if self._loop.is_closed():
                break
            asyncio.run_coroutine_threadsafe(
                self._broadcast({
                    "type": msg.get("type", "unknown"),
                    "data": msg.get("data"),
                    "timestamp": _timestamp(),
                }),
                self._loop,
            )
