"""Single consumer context for the reader pipeline.

Serial reads, keystrokes, hot-plug notifications, settle timers and HTTP
requests all arrive on their own threads. They only post messages here; one
worker thread drains the queue in arrival order and is the only code that
touches ReaderState, the connection and the attendance log. Scans are
therefore never processed concurrently, and no per-card lock exists.
"""

import queue
import threading
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Optional

from cardclock.models.device import ConnectionState
from cardclock.models.scan import ScanEvent, ScanOutcome
from cardclock.shared.logger import app_logger

SCAN = "scan"
ATTACH = "attach"
DETACH = "detach"
CALL = "call"
TASK = "task"
_STOP = object()

RECENT_SCANS_LIMIT = 20


@dataclass
class ReaderState:
    """Application state owned by the consumer thread"""

    connection: ConnectionState = field(default_factory=ConnectionState.disconnected)
    last_outcome: Optional[ScanOutcome] = None
    recent_scans: Deque[Dict[str, Any]] = field(
        default_factory=lambda: deque(maxlen=RECENT_SCANS_LIMIT)
    )
    scans_processed: int = 0
    last_scan_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connection": self.connection.to_dict(),
            "last_outcome": self.last_outcome.to_dict() if self.last_outcome else None,
            "scans_processed": self.scans_processed,
            "last_scan_at": self.last_scan_at.strftime("%Y-%m-%d %H:%M:%S")
            if self.last_scan_at
            else None,
        }


class ScanDispatcher:
    """Queue plus worker thread that routes reader messages in arrival order"""

    def __init__(self, engine, config=None, event_stream=None):
        self.engine = engine
        self.config = config
        self.events = event_stream
        self.state = ReaderState()

        # Set by the owner once the coordinator exists
        self.on_attach: Optional[Callable] = None
        self.on_detach: Optional[Callable] = None

        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running and self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            app_logger.warning("Scan dispatcher already running")
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="ScanDispatcher")
        self._thread.start()
        app_logger.info("Scan dispatcher started")

    def stop(self, wait_timeout: float = 3.0) -> None:
        if not self._running:
            return
        self._running = False
        self._queue.put((_STOP, None))
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=wait_timeout)
        self._thread = None
        app_logger.info("Scan dispatcher stopped")

    # Producer side: safe from any thread

    def post_scan(self, event: ScanEvent) -> None:
        self._queue.put((SCAN, event))

    def post_attach(self, descriptor) -> None:
        self._queue.put((ATTACH, descriptor))

    def post_detach(self, descriptor) -> None:
        self._queue.put((DETACH, descriptor))

    def post(self, fn: Callable, *args) -> None:
        """Run fn on the consumer thread without waiting; errors are logged"""
        self._queue.put((TASK, (fn, args)))

    def submit(self, fn: Callable, *args) -> Future:
        """Run fn on the consumer thread; the future carries its result"""
        future: Future = Future()
        self._queue.put((CALL, (fn, args, future)))
        return future

    def call(self, fn: Callable, *args, timeout: float = 10.0):
        """Run fn on the consumer thread and wait for the result"""
        if threading.current_thread() is self._thread:
            return fn(*args)
        if not self.is_running:
            raise RuntimeError("Scan dispatcher is not running")
        return self.submit(fn, *args).result(timeout=timeout)

    def drain(self) -> int:
        """Process everything queued on the calling thread; used when no worker runs"""
        processed = 0
        while True:
            try:
                kind, payload = self._queue.get_nowait()
            except queue.Empty:
                return processed
            if kind is _STOP:
                continue
            self._dispatch(kind, payload)
            processed += 1

    # Consumer side

    def process_scan(self, card_id: str, timestamp: datetime = None) -> ScanOutcome:
        """Resolve one scan and publish the outcome; consumer thread only"""
        timestamp = timestamp or datetime.now()
        outcome = self.engine.process_scan(card_id, timestamp)

        self.state.last_outcome = outcome
        self.state.last_scan_at = timestamp
        self.state.scans_processed += 1

        if outcome.success:
            self.state.recent_scans.appendleft(
                {
                    "time": timestamp.strftime("%H:%M"),
                    "name": outcome.employee.name if outcome.employee else "Unknown",
                    "status": outcome.record.status if outcome.record else None,
                    "card_id": outcome.card_id,
                }
            )

        if self.events is not None:
            payload = outcome.to_dict()
            payload["play_sound"] = bool(
                outcome.success and self._play_sound_enabled()
            )
            self.events.publish_scan(payload)

        return outcome

    def _play_sound_enabled(self) -> bool:
        if self.config is None:
            return False
        try:
            return self.config.get_settings().play_sound_on_scan
        except Exception as e:
            app_logger.debug(f"Could not read play_sound_on_scan: {e}")
            return False

    def _run(self) -> None:
        while True:
            kind, payload = self._queue.get()
            if kind is _STOP:
                break
            self._dispatch(kind, payload)

    def _dispatch(self, kind, payload) -> None:
        try:
            if kind == SCAN:
                self.process_scan(payload.raw_card_id, payload.timestamp)
            elif kind == ATTACH:
                if self.on_attach:
                    self.on_attach(payload)
            elif kind == DETACH:
                if self.on_detach:
                    self.on_detach(payload)
            elif kind == TASK:
                fn, args = payload
                fn(*args)
            elif kind == CALL:
                fn, args, future = payload
                if not future.set_running_or_notify_cancel():
                    return
                try:
                    future.set_result(fn(*args))
                except Exception as e:
                    future.set_exception(e)
            else:
                app_logger.warning(f"Unknown dispatcher message {kind!r}")
        except Exception as e:
            # One failing message must not stop the consumer
            app_logger.error(f"[SCAN] Error handling {kind} message: {e}", exc_info=True)
