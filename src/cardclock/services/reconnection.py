"""Auto-connect / auto-disconnect state machine for the single reader.

All methods are meant to run on the scan dispatcher's consumer thread. The
settle delays are handed to ``schedule_later`` which must call back on that
same thread later on (the reader service wires it to the scheduler plus
``ScanDispatcher.post``), so nothing here ever sleeps.
"""

import threading
from typing import Callable, Dict, Iterable, List, Optional

from cardclock.config import settings as app_settings
from cardclock.models.device import ConnectionState, DeviceDescriptor
from cardclock.services.scan_reader import ConnectError, ReaderBusyError
from cardclock.shared.logger import app_logger


def select_port(
    new_ports: Iterable[str], descriptors: Dict[str, DeviceDescriptor]
) -> Optional[str]:
    """Reader-class ports win over generic ones; among equals the first wins"""
    candidates = list(new_ports)
    if not candidates:
        return None

    for port in candidates:
        descriptor = descriptors.get(port)
        if descriptor is not None and descriptor.is_reader_class:
            return port
    return candidates[0]


class ReconnectionCoordinator:
    def __init__(
        self,
        front_end,
        config,
        schedule_later: Callable = None,
        notify: Callable = None,
        on_state_change: Callable[[ConnectionState], None] = None,
        descriptor_source: Callable[[], List[DeviceDescriptor]] = None,
        attach_settle_ms: int = None,
        detach_settle_ms: int = None,
    ):
        self.front_end = front_end
        self.config = config
        self._schedule_later = schedule_later or (lambda delay, fn, *args: fn(*args))
        self._notify = notify
        self._on_state_change = on_state_change
        self._descriptor_source = descriptor_source
        self.attach_settle_ms = (
            app_settings.ATTACH_SETTLE_MS if attach_settle_ms is None else attach_settle_ms
        )
        self.detach_settle_ms = (
            app_settings.DETACH_SETTLE_MS if detach_settle_ms is None else detach_settle_ms
        )

        self.state = ConnectionState.disconnected()
        self.known_ports: List[str] = []
        self.descriptors: Dict[str, DeviceDescriptor] = {}
        # Bumped by every disconnect so a connect that finishes afterwards is discarded
        self._attempt = 0
        self._attempt_lock = threading.Lock()

    def initialize(self) -> ConnectionState:
        """Record the port inventory and run the startup auto-connect"""
        self.known_ports = self.front_end.available_ports()
        self._refresh_descriptors()

        settings = self.config.get_settings()
        if not settings.auto_connect_on_startup or not self.known_ports:
            return self.state

        last_port = settings.last_connected_port
        port = last_port if last_port in self.known_ports else self.known_ports[0]
        app_logger.info(f"[DEVICE] Auto-connecting to {port} on startup")
        if self._try_connect(port, settings.baud_rate):
            self._send_notification(f"Connected to reader on {port}")
        else:
            self._send_notification(f"Could not connect to reader on {port}", "warning")
        return self.state

    # Hot-plug

    def handle_attach(self, descriptor: DeviceDescriptor) -> None:
        if descriptor is not None and descriptor.port_name:
            self.descriptors[descriptor.port_name] = descriptor
        self._schedule_later(self.attach_settle_ms / 1000.0, self._attach_settled)

    def handle_detach(self, descriptor: DeviceDescriptor) -> None:
        self._schedule_later(self.detach_settle_ms / 1000.0, self._detach_settled, descriptor)

    def _attach_settled(self) -> Optional[str]:
        current = self.front_end.available_ports()
        new_ports = [port for port in current if port not in self.known_ports]
        self.known_ports = current
        self._refresh_descriptors()

        if not new_ports:
            app_logger.debug("[DEVICE] Attach settled with no new serial ports")
            return None

        settings = self.config.get_settings()
        port = select_port(new_ports, self.descriptors)

        if not self.state.is_disconnected or not settings.auto_connect_on_device_plug:
            self._send_notification(f"New reader detected on {port}")
            return None

        if self._try_connect(port, settings.baud_rate):
            self._send_notification(f"Reader detected on {port} - Connected automatically")
            return port

        self._send_notification(f"Reader detected on {port} but could not connect", "warning")
        return None

    def _detach_settled(self, descriptor: DeviceDescriptor = None) -> bool:
        current = self.front_end.available_ports()
        removed = [port for port in self.known_ports if port not in current]
        self.known_ports = current
        for port in removed:
            self.descriptors.pop(port, None)

        if not self.state.is_connected:
            return False

        port = self.state.port_name
        detached_port = descriptor.port_name if descriptor is not None else None
        if port not in removed and not (detached_port == port and port not in current):
            app_logger.debug(f"[DEVICE] Ignoring detach unrelated to {port}")
            return False

        self._next_attempt()
        self._safe_disconnect()
        self._set_state(ConnectionState.disconnected())
        self._send_notification(f"Reader on {port} disconnected", "warning")
        return True

    # Operator requests

    def connect(self, port_name: str, baud_rate: int = None) -> ConnectionState:
        """Explicit connect; raises ConnectError with an actionable detail on failure"""
        settings = self.config.get_settings()
        baud_rate = baud_rate or settings.baud_rate

        if not self.state.is_disconnected:
            raise ReaderBusyError(
                port_name,
                baud_rate,
                f"reader already connected on {self.state.port_name}",
            )

        self._open(port_name, baud_rate)
        return self.state

    def disconnect(self) -> ConnectionState:
        self._next_attempt()
        was_connected = not self.state.is_disconnected
        self._safe_disconnect()
        self._set_state(ConnectionState.disconnected())
        if was_connected:
            app_logger.info("[DEVICE] Reader disconnected by operator")
        return self.state

    def cancel(self) -> None:
        """Discard the result of any connect still in flight; safe from any thread"""
        self._next_attempt()

    # Internals

    def _next_attempt(self) -> int:
        with self._attempt_lock:
            self._attempt += 1
            return self._attempt

    @property
    def current_attempt(self) -> int:
        with self._attempt_lock:
            return self._attempt

    def _try_connect(self, port_name: str, baud_rate: int) -> bool:
        try:
            self._open(port_name, baud_rate)
        except ConnectError as e:
            app_logger.warning(f"[DEVICE] Auto-connect to {port_name} failed: {e.reason}")
            return False
        return self.state.is_connected

    def _open(self, port_name: str, baud_rate: int) -> None:
        attempt = self._next_attempt()
        self._set_state(ConnectionState.connecting(port_name))

        try:
            self.front_end.connect(port_name, baud_rate)
        except ConnectError:
            self._set_state(ConnectionState.disconnected())
            raise

        if attempt != self.current_attempt:
            # A disconnect came in while the port was opening
            app_logger.info(f"[DEVICE] Discarding connect to {port_name} after disconnect")
            self._safe_disconnect()
            self._set_state(ConnectionState.disconnected())
            return

        self._set_state(ConnectionState.connected(port_name))
        try:
            self.config.set_last_connected_port(port_name)
        except Exception as e:
            app_logger.warning(f"Could not remember last connected port {port_name}: {e}")

    def _safe_disconnect(self) -> None:
        try:
            self.front_end.disconnect()
        except Exception as e:
            app_logger.error(f"[DEVICE] Error while disconnecting reader: {e}")

    def _refresh_descriptors(self) -> None:
        if self._descriptor_source is None:
            return
        try:
            for descriptor in self._descriptor_source():
                if descriptor.port_name:
                    self.descriptors.setdefault(descriptor.port_name, descriptor)
        except Exception as e:
            app_logger.debug(f"[DEVICE] Could not refresh device descriptors: {e}")

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        where = f" on {state.port_name}" if state.port_name else ""
        app_logger.info(f"[DEVICE] Reader {state.status}{where}")
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception as e:
                app_logger.error(f"Connection state listener failed: {e}")

    def _send_notification(self, message: str, level: str = "info") -> None:
        app_logger.info(f"[DEVICE] {message}")
        if self._notify is not None:
            try:
                self._notify(message, level)
            except Exception as e:
                app_logger.error(f"Failed to publish notification: {e}")
