"""Hot-plug observation of serial-capable devices.

Port appearance/disappearance is polled from pyserial's port enumeration on a
scheduler interval (the same two-second window the platform PnP queries use).
Each change goes through ``handle_notification``, which filters out non-serial
devices, classifies the rest as reader-class or generic, and extracts the port
name before firing ``on_attach``/``on_detach``.
"""

import re
from typing import Callable, Dict, List, Optional

from serial.tools import list_ports

from cardclock.models.device import DeviceDescriptor
from cardclock.models.setting import DeviceClass
from cardclock.shared.logger import app_logger

ATTACH = "attach"
DETACH = "detach"

# A notification is forwarded only if its name or caption contains one of these
SERIAL_INDICATORS = ("COM", "Serial", "/dev/tty", "/dev/cu.")

# USB-to-serial bridges found on microcontroller-based card readers
READER_CHIP_INDICATORS = (
    "CP210",  # Silicon Labs CP210x
    "CH340",  # WCH CH340
    "CH341",
    "CH9102",
    "FT232",  # FTDI
    "ESP32",
    "ESP32-S2",
    "ESP32-S3",
    "USB SERIAL",
    "USB\\VID_10C4&PID_EA60",  # CP2102, Windows PnP id
    "USB\\VID_1A86&PID_7523",  # CH340
    "USB\\VID_0403&PID_6001",  # FT232
    "VID:PID=10C4:EA60",  # same ids in pyserial hwid form
    "VID:PID=1A86:7523",
    "VID:PID=1A86:55D4",
    "VID:PID=0403:6001",
)

COM_PORT_PATTERN = re.compile(r"COM(\d+)", re.IGNORECASE)
POSIX_PORT_PATTERN = re.compile(r"/dev/(?:tty|cu\.)[\w.\-]+")


def is_serial_device(name: Optional[str], caption: Optional[str]) -> bool:
    text = f"{name or ''} {caption or ''}"
    return any(indicator in text for indicator in SERIAL_INDICATORS)


def classify(
    name: Optional[str],
    caption: Optional[str],
    pnp_id: Optional[str],
    indicators=READER_CHIP_INDICATORS,
) -> bool:
    """True when the descriptor looks like a known reader bridge chip"""
    if not (name or "").strip() and not (caption or "").strip() and not (pnp_id or "").strip():
        return False

    combined = f"{name or ''} {caption or ''} {pnp_id or ''}".upper()
    return any(indicator.upper() in combined for indicator in indicators)


def extract_port_name(name: Optional[str], caption: Optional[str]) -> Optional[str]:
    text = f"{name or ''} {caption or ''}"
    match = COM_PORT_PATTERN.search(text)
    if match:
        return f"COM{match.group(1)}"
    match = POSIX_PORT_PATTERN.search(text)
    return match.group(0) if match else None


class KnownChipClassifier:
    """Reader-class when the descriptor matches the known bridge-chip table"""

    name = DeviceClass.READER

    def __init__(self, indicators=READER_CHIP_INDICATORS):
        self.indicators = tuple(indicators)

    def __call__(self, name, caption, pnp_id) -> bool:
        return classify(name, caption, pnp_id, self.indicators)


class GenericClassifier:
    """Treats every serial device alike"""

    name = DeviceClass.GENERIC

    def __call__(self, name, caption, pnp_id) -> bool:
        return False


def get_classifier(preferred_device_class: str):
    if preferred_device_class == DeviceClass.GENERIC:
        return GenericClassifier()
    return KnownChipClassifier()


class DeviceWatcher:
    """Raises attach/detach callbacks for serial-capable devices"""

    JOB_ID = "device_watcher_poll"

    def __init__(
        self,
        on_attach: Callable[[DeviceDescriptor], None] = None,
        on_detach: Callable[[DeviceDescriptor], None] = None,
        classifier=None,
        scheduler=None,
        poll_interval: float = 2.0,
        port_lister=list_ports.comports,
    ):
        self.on_attach = on_attach
        self.on_detach = on_detach
        self.classifier = classifier or KnownChipClassifier()
        self.scheduler = scheduler
        self.poll_interval = poll_interval
        self._port_lister = port_lister
        self._known: Dict[str, object] = {}
        self.is_running = False

    def start(self) -> bool:
        """Begin watching; on failure, log and fall back to manual connect only"""
        self.stop()

        try:
            self._known = self._list_ports()
            if self.scheduler is not None:
                self.scheduler.add_interval_job(
                    self.poll, self.poll_interval, self.JOB_ID, name="Serial device hot-plug poll"
                )
            self.is_running = True
            app_logger.info(
                f"[DEVICE] Device watcher started ({len(self._known)} serial port(s) present)"
            )
        except Exception as e:
            app_logger.error(
                f"[DEVICE] Failed to start device watcher, hot-plug detection disabled: {e}"
            )
            self.is_running = False

        return self.is_running

    def stop(self) -> None:
        if not self.is_running:
            return
        if self.scheduler is not None:
            try:
                self.scheduler.remove_job(self.JOB_ID)
            except Exception as e:
                app_logger.debug(f"[DEVICE] Could not remove watcher job: {e}")
        self.is_running = False
        app_logger.info("[DEVICE] Device watcher stopped")

    def poll(self) -> None:
        """Diff the current port set against the previous one and raise events"""
        try:
            current = self._list_ports()
        except Exception as e:
            app_logger.warning(f"[DEVICE] Port enumeration failed: {e}")
            return

        removed = [device for device in self._known if device not in current]
        added = [device for device in current if device not in self._known]
        previous = self._known
        self._known = current

        for device in removed:
            info = previous[device]
            self.handle_notification(DETACH, *self._notification_fields(device, info))

        for device in added:
            info = current[device]
            self.handle_notification(ATTACH, *self._notification_fields(device, info))

    def handle_notification(
        self, kind: str, name: Optional[str], caption: Optional[str], pnp_id: Optional[str]
    ) -> Optional[DeviceDescriptor]:
        """Filter, classify and forward one raw platform notification"""
        try:
            if not is_serial_device(name, caption):
                return None

            descriptor = DeviceDescriptor(
                port_name=extract_port_name(name, caption),
                device_name=name or "",
                device_caption=caption or "",
                pnp_id=pnp_id or "",
                is_reader_class=bool(self.classifier(name, caption, pnp_id)),
            )
        except Exception as e:
            app_logger.error(f"[DEVICE] Error reading {kind} notification: {e}")
            descriptor = DeviceDescriptor(port_name=None, is_reader_class=False)

        app_logger.info(
            f"[DEVICE] {kind} {descriptor.port_name or '?'} "
            f"({descriptor.device_caption or descriptor.device_name}), "
            f"reader-class={descriptor.is_reader_class}"
        )

        callback = self.on_attach if kind == ATTACH else self.on_detach
        if callback is not None:
            try:
                callback(descriptor)
            except Exception as e:
                app_logger.error(f"[DEVICE] {kind} handler failed: {e}")

        return descriptor

    def snapshot(self) -> List[DeviceDescriptor]:
        """Descriptors of the serial ports seen on the last poll"""
        descriptors = []
        for device, info in self._known.items():
            name, caption, pnp_id = self._notification_fields(device, info)
            descriptors.append(
                DeviceDescriptor(
                    port_name=extract_port_name(name, caption) or device,
                    device_name=name,
                    device_caption=caption,
                    pnp_id=pnp_id,
                    is_reader_class=bool(self.classifier(name, caption, pnp_id)),
                )
            )
        return descriptors

    def _list_ports(self) -> Dict[str, object]:
        return {port.device: port for port in self._port_lister()}

    @staticmethod
    def _notification_fields(device: str, info):
        caption = getattr(info, "description", "") or ""
        pnp_id = getattr(info, "hwid", "") or ""
        # pyserial enumerates serial ports only, so make that explicit for the filter
        if not is_serial_device(device, caption):
            caption = f"{caption} (Serial)".strip()
        return device, caption, pnp_id
