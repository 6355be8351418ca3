"""In-process event broadcaster feeding the UI over Server-Sent Events."""

import threading
import queue
import json
from typing import Dict, Any

from cardclock.config import settings


class EventType:
    SCAN = "scan"
    CONNECTION = "connection"
    NOTIFICATION = "notification"


class EventStream:
    """Thread-safe pub/sub queue for pushing reader events to SSE clients."""

    def __init__(self, max_queue_size: int = 100):
        self._subscribers: set[queue.Queue] = set()
        self._lock = threading.Lock()
        self._max_queue_size = max_queue_size

    def subscribe(self) -> queue.Queue:
        """Register a new subscriber and return its queue."""
        q = queue.Queue(maxsize=self._max_queue_size)
        with self._lock:
            self._subscribers.add(q)
        return q

    def unsubscribe(self, subscriber: queue.Queue) -> None:
        """Remove a subscriber queue (safe to call multiple times)."""
        with self._lock:
            self._subscribers.discard(subscriber)

    def publish(self, event_type: str, data: Dict[str, Any]) -> None:
        """Push a typed event to all subscribers without blocking."""
        if not event_type:
            return

        payload = json.dumps({"type": event_type, "data": data}, ensure_ascii=False, default=str)

        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber.put_nowait(payload)
            except queue.Full:
                # Drop the oldest event so a slow client never blocks the reader
                try:
                    subscriber.get_nowait()
                except queue.Empty:
                    pass
                try:
                    subscriber.put_nowait(payload)
                except queue.Full:
                    continue

    def publish_scan(self, outcome: Dict[str, Any]) -> None:
        self.publish(EventType.SCAN, outcome)

    def publish_connection(self, state: Dict[str, Any]) -> None:
        self.publish(EventType.CONNECTION, state)

    def publish_notification(self, message: str, level: str = "info") -> None:
        """Transient message the UI shows for NOTIFICATION_TTL seconds"""
        self.publish(
            EventType.NOTIFICATION,
            {"message": message, "level": level, "expires_in": settings.NOTIFICATION_TTL},
        )


# Global event stream instance for reader notifications
reader_event_stream = EventStream()
