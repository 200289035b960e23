"""EventBus -- thread-safe pub/sub between the tick thread and listeners.

The simulation engine publishes on two topics:

    sim_event       one message per logged Event (data = Event.to_dict())
    sim_telemetry   once per completed tick (data = list of aircraft dicts)

The app layer's WebSocket bridge (``app.routers.ws.EventBridge``) subscribes
to every topic and forwards messages to connected browsers.

Subscribers get a bounded queue.  When a queue is full the oldest message is
dropped so a slow reader always sees the most recent state.
"""

from __future__ import annotations

import queue
import threading

_DEFAULT_QUEUE_SIZE = 500


class EventBus:
    """Simple thread-safe pub/sub for pushing simulation events to readers."""

    def __init__(self, queue_size: int = _DEFAULT_QUEUE_SIZE) -> None:
        self._lock = threading.Lock()
        self._queue_size = queue_size
        self._subscribers: list[tuple[queue.Queue, str | None]] = []

    def subscribe(self, topic: str | None = None) -> queue.Queue:
        """Subscribe to one topic, or to every topic when ``topic`` is None."""
        q: queue.Queue = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._subscribers.append((q, topic))
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            self._subscribers = [(s, t) for s, t in self._subscribers if s is not q]

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event_type: str, data: object | None = None) -> None:
        msg: dict = {"type": event_type}
        if data is not None:
            msg["data"] = data
        with self._lock:
            targets = [q for q, topic in self._subscribers if topic in (None, event_type)]
        for q in targets:
            try:
                q.put_nowait(msg)
            except queue.Full:
                try:
                    q.get_nowait()
                except queue.Empty:
                    pass
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    pass
