"""Scan acquisition front-end.

Normalizes the two reader protocols into a stream of raw card identifiers:

* serial mode: bytes from a pyserial port, one card id per line
  (``\\r`` or ``\\n`` terminated);
* keystroke mode: characters typed by a reader that emulates a keyboard,
  flushed on Enter.

Every identifier is handed to the ``on_scan`` callback as a ``ScanEvent``.
The callback runs on the reader thread (serial) or on the caller's thread
(keystrokes), so it must only hand the event off, never touch shared state.
"""

import threading
import time
from datetime import datetime
from typing import Callable, List, Optional

import serial
from serial.tools import list_ports

from cardclock.models.scan import ScanEvent
from cardclock.shared.logger import app_logger

LINE_TERMINATORS = ("\r", "\n")


class ConnectError(Exception):
    """The reader port could not be opened"""

    def __init__(self, port_name: str, baud_rate: int, reason: str):
        self.port_name = port_name
        self.baud_rate = baud_rate
        self.reason = reason
        super().__init__(f"Failed to connect to {port_name} at {baud_rate} baud: {reason}")

    @property
    def detail(self) -> str:
        return (
            f"Could not open {self.port_name} at {self.baud_rate} baud ({self.reason}). "
            "Check that the reader is plugged in, that no other program is using the port, "
            "that you have permission to open it, and that the baud rate matches the reader."
        )


class PortUnavailableError(ConnectError):
    """Port missing, busy or not permitted"""


class ReaderBusyError(ConnectError):
    """A reader connection is already open"""


class LineFramer:
    """Splits an arbitrary chunked character stream into trimmed, non-empty lines.

    Characters after the last terminator stay buffered until more data arrives.
    """

    def __init__(self):
        self._buffer: List[str] = []

    def feed(self, data: str) -> List[str]:
        lines = []
        for char in data:
            if char in LINE_TERMINATORS:
                line = "".join(self._buffer).strip()
                self._buffer.clear()
                if line:
                    lines.append(line)
            else:
                self._buffer.append(char)
        return lines

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()


class KeystrokeBuffer:
    """Accumulates keys from a keyboard-emulating reader until Enter"""

    def __init__(self):
        self._buffer: List[str] = []

    def feed_key(self, key: str) -> Optional[str]:
        """Returns the card id on Enter, None otherwise"""
        if key in LINE_TERMINATORS:
            if not self._buffer:
                return None
            card_id = "".join(self._buffer).strip()
            self._buffer.clear()
            return card_id or None

        # Only digits and letters make up a card id; anything else is ignored
        if len(key) == 1 and key.isascii() and key.isalnum():
            self._buffer.append(key)
        return None

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()


class SerialScanReader:
    """Owns the single reader connection and turns its input into ScanEvents"""

    def __init__(
        self,
        on_scan: Callable[[ScanEvent], None] = None,
        serial_factory=serial.Serial,
        port_lister=list_ports.comports,
        read_timeout: float = 0.25,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.on_scan = on_scan
        self._serial_factory = serial_factory
        self._port_lister = port_lister
        self._read_timeout = read_timeout
        self._clock = clock

        self._serial = None
        self._port_name: Optional[str] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._framer = LineFramer()
        self._keystrokes = KeystrokeBuffer()
        self._key_lock = threading.Lock()

    @property
    def port_name(self) -> Optional[str]:
        return self._port_name if self.is_connected() else None

    def available_ports(self) -> List[str]:
        """Sorted, de-duplicated names of the serial ports currently present"""
        try:
            return sorted({port.device for port in self._port_lister()})
        except Exception as e:
            app_logger.error(f"[DEVICE] Failed to list serial ports: {e}")
            return []

    def is_connected(self) -> bool:
        handle = self._serial
        return bool(handle is not None and getattr(handle, "is_open", False))

    def connect(self, port_name: str, baud_rate: int) -> None:
        """Open the port and start reading; raises PortUnavailableError on failure"""
        if not port_name or not str(port_name).strip():
            raise PortUnavailableError(port_name or "", baud_rate, "port name is required")

        # Re-connecting replaces any existing connection
        self.disconnect()

        try:
            handle = self._serial_factory(
                port=port_name, baudrate=baud_rate, timeout=self._read_timeout
            )
        except (serial.SerialException, OSError, ValueError) as e:
            app_logger.warning(f"[DEVICE] Failed to connect to device on {port_name}: {e}")
            raise PortUnavailableError(port_name, baud_rate, str(e)) from e

        with self._lock:
            self._serial = handle
            self._port_name = port_name
            self._framer.reset()
            self._stop_event = threading.Event()
            self._reader_thread = threading.Thread(
                target=self._read_loop,
                args=(handle, self._stop_event),
                daemon=True,
                name=f"ScanReader-{port_name}",
            )
            self._reader_thread.start()

        app_logger.info(f"[DEVICE] Connected to device on {port_name} at {baud_rate} baud")

    def disconnect(self, wait_timeout: float = 1.0) -> None:
        """Close the port; a no-op when already disconnected"""
        with self._lock:
            handle = self._serial
            thread = self._reader_thread
            port_name = self._port_name
            self._serial = None
            self._reader_thread = None
            self._port_name = None
            self._stop_event.set()

        if handle is None:
            return

        try:
            handle.close()
        except (serial.SerialException, OSError) as e:
            app_logger.debug(f"[DEVICE] Error closing {port_name}: {e}")

        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=wait_timeout)
            if thread.is_alive():
                app_logger.warning(
                    f"[DEVICE] Reader thread for {port_name} did not stop within {wait_timeout}s"
                )

        app_logger.info(f"[DEVICE] Disconnected from {port_name}")

    def feed_keys(self, keys: str) -> int:
        """Feed characters from a keyboard-emulating reader; returns scans emitted"""
        if self.is_connected():
            app_logger.debug("[SCAN] Ignoring keystrokes while a serial reader is connected")
            return 0

        emitted = []
        with self._key_lock:
            for key in keys:
                card_id = self._keystrokes.feed_key(key)
                if card_id:
                    emitted.append(card_id)

        for card_id in emitted:
            self._emit(card_id)
        return len(emitted)

    def _read_loop(self, handle, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                waiting = getattr(handle, "in_waiting", 0) or 1
                data = handle.read(waiting)
                if not data:
                    continue
                text = data.decode("ascii", errors="replace")
                if "\ufffd" in text:
                    app_logger.debug(f"[SCAN] Non-ASCII bytes from {self._port_name}: {data!r}")
                for line in self._framer.feed(text):
                    self._emit(line)
            except Exception as e:
                if stop_event.is_set():
                    break
                # One bad read must not end the acquisition stream
                app_logger.debug(f"[SCAN] Read error on {self._port_name}: {e}")
                time.sleep(self._read_timeout)

    def _emit(self, card_id: str) -> None:
        if self.on_scan is None:
            app_logger.warning(f"[SCAN] Dropping scan {card_id}: no consumer attached")
            return
        try:
            self.on_scan(ScanEvent(raw_card_id=card_id, timestamp=self._clock()))
        except Exception as e:
            app_logger.error(f"[SCAN] Failed to hand off scan {card_id}: {e}")
