import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from cardclock.config import settings as app_settings
from cardclock.config.config_manager import config_manager as default_config_manager
from cardclock.events import reader_event_stream
from cardclock.models.device import ConnectionState
from cardclock.models.scan import ScanOutcome
from cardclock.models.setting import InputMode
from cardclock.services.attendance_service import attendance_engine
from cardclock.services.device_watcher import DeviceWatcher, get_classifier
from cardclock.services.reconnection import ReconnectionCoordinator
from cardclock.services.scan_dispatcher import ScanDispatcher
from cardclock.services.scan_reader import SerialScanReader
from cardclock.services.scheduler_service import scheduler_service as default_scheduler
from cardclock.shared.logger import app_logger


class ReaderNotRunningError(RuntimeError):
    """The reader runtime has not been started"""


class ReaderService:
    """Runtime wiring of the reader pipeline.

    Owns the serial front-end, the device watcher, the reconnection
    coordinator and the scan dispatcher. Everything that changes reader or
    attendance state is routed through the dispatcher's consumer thread.
    """

    def __init__(
        self,
        config=None,
        event_stream=None,
        scheduler=None,
        front_end=None,
        engine=None,
        port_lister=None,
    ):
        self.config = config or default_config_manager
        self.events = event_stream or reader_event_stream
        self.scheduler = scheduler or default_scheduler
        self.engine = engine or attendance_engine

        self.dispatcher = ScanDispatcher(self.engine, self.config, self.events)
        self.front_end = front_end or SerialScanReader(on_scan=self.dispatcher.post_scan)

        watcher_kwargs = {"port_lister": port_lister} if port_lister else {}
        self.watcher = DeviceWatcher(
            on_attach=self.dispatcher.post_attach,
            on_detach=self.dispatcher.post_detach,
            scheduler=self.scheduler,
            poll_interval=app_settings.DEVICE_POLL_INTERVAL,
            **watcher_kwargs,
        )
        self.coordinator = ReconnectionCoordinator(
            self.front_end,
            self.config,
            schedule_later=self._schedule_on_consumer,
            notify=self.events.publish_notification,
            on_state_change=self._on_connection_change,
            descriptor_source=self.watcher.snapshot,
        )
        self.dispatcher.on_attach = self.coordinator.handle_attach
        self.dispatcher.on_detach = self.coordinator.handle_detach

        self.is_running = False
        self._lock = threading.Lock()

    def start(self, watch_devices: bool = True) -> None:
        with self._lock:
            if self.is_running:
                app_logger.warning("Reader service already running")
                return

            self.config.initialize_defaults()
            self.apply_settings()
            self.dispatcher.start()

            if not self.scheduler.is_running:
                try:
                    self.scheduler.start()
                except Exception as e:
                    app_logger.error(f"Scheduler unavailable, settle delays run inline: {e}")

            try:
                self.dispatcher.call(self.coordinator.initialize)
            except Exception as e:
                app_logger.error(f"[DEVICE] Startup auto-connect failed: {e}")

            if watch_devices:
                self.watcher.start()

            self.is_running = True
            app_logger.info("Reader service started")

    def stop(self) -> None:
        with self._lock:
            if not self.is_running:
                return
            self.is_running = False

            app_logger.info("Stopping reader service...")
            self.coordinator.cancel()

            try:
                self.watcher.stop()
            except Exception as e:
                app_logger.error(f"Error stopping device watcher: {e}")

            try:
                self.scheduler.stop()
            except Exception as e:
                app_logger.error(f"Error stopping scheduler: {e}")

            try:
                if self.dispatcher.is_running:
                    self.dispatcher.call(self.coordinator.disconnect)
                else:
                    self.coordinator.disconnect()
            except Exception as e:
                app_logger.error(f"Error disconnecting reader: {e}")

            try:
                self.dispatcher.stop()
            except Exception as e:
                app_logger.error(f"Error stopping scan dispatcher: {e}")

            app_logger.info("Reader service stopped")

    def apply_settings(self) -> None:
        """Pick up settings that change how devices are classified"""
        settings = self.config.get_settings()
        self.watcher.classifier = get_classifier(settings.preferred_device_class)
        app_logger.info(f"[DEVICE] Using '{settings.preferred_device_class}' device classification")

    # Operator operations, each executed on the consumer thread

    def connect(self, port_name: str, baud_rate: int = None) -> ConnectionState:
        self._require_running()
        return self.dispatcher.call(self.coordinator.connect, port_name, baud_rate)

    def disconnect(self) -> ConnectionState:
        self._require_running()
        self.coordinator.cancel()
        return self.dispatcher.call(self.coordinator.disconnect)

    def scan(self, card_id: Optional[str] = None, timestamp: datetime = None) -> ScanOutcome:
        """Manual scan; without a card id a TEST<HHMMSS> id is generated"""
        self._require_running()
        timestamp = timestamp or datetime.now()
        if not (card_id or "").strip():
            card_id = f"TEST{timestamp.strftime('%H%M%S')}"
        return self.dispatcher.call(self.dispatcher.process_scan, card_id, timestamp)

    def feed_keys(self, keys: str) -> int:
        """Keys typed by a keyboard-emulating reader; ignored in serial input mode"""
        self._require_running()
        if self.config.get_settings().input_mode != InputMode.KEYBOARD:
            app_logger.debug("[SCAN] Keystrokes ignored, input mode is serial")
            return 0
        return self.front_end.feed_keys(keys)

    def status(self) -> Dict[str, Any]:
        self._require_running()
        state = self.dispatcher.call(self.dispatcher.state.to_dict)
        state["watching_devices"] = self.watcher.is_running
        state["fallback_count"] = getattr(self.engine, "fallback_count", 0)
        return state

    def ports(self) -> Dict[str, Any]:
        self._require_running()
        descriptors = {d.port_name: d for d in self.watcher.snapshot() if d.port_name}
        names = self.front_end.available_ports()
        return {
            "ports": names,
            "devices": [descriptors[name].to_dict() for name in names if name in descriptors],
        }

    def recent_scans(self) -> List[Dict[str, Any]]:
        self._require_running()
        return self.dispatcher.call(lambda: list(self.dispatcher.state.recent_scans))

    # Internals

    def _require_running(self) -> None:
        if not self.is_running:
            raise ReaderNotRunningError("Reader service is not running")

    def _schedule_on_consumer(self, delay_seconds: float, fn, *args) -> None:
        try:
            self.scheduler.call_later(delay_seconds, self.dispatcher.post, fn, *args)
        except RuntimeError as e:
            app_logger.warning(f"[DEVICE] Could not schedule settle delay ({e}), running now")
            self.dispatcher.post(fn, *args)

    def _on_connection_change(self, state: ConnectionState) -> None:
        self.dispatcher.state.connection = state
        self.events.publish_connection(state.to_dict())


_reader_service: Optional[ReaderService] = None
_reader_service_lock = threading.Lock()


def get_reader_service() -> ReaderService:
    global _reader_service
    with _reader_service_lock:
        if _reader_service is None:
            _reader_service = ReaderService()
        return _reader_service
