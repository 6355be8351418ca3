from typing import Dict, Any, Optional
from cardclock.models.setting import ReaderSettings, DeviceClass, InputMode
from cardclock.repositories import setting_repo as default_setting_repo

BOOL_FIELDS = (
    "auto_connect_on_startup",
    "auto_connect_on_device_plug",
    "play_sound_on_scan",
)


def _to_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ("y", "yes", "t", "true", "on", "1")


class ReaderConfigManager:
    """Typed access to the reader settings stored in app_settings"""

    def __init__(self, setting_repo=None):
        self.setting_repo = setting_repo or default_setting_repo

    def initialize_defaults(self) -> None:
        self.setting_repo.initialize_defaults()

    def get_settings(self) -> ReaderSettings:
        stored = self.setting_repo.get_all()
        defaults = ReaderSettings()

        baud_rate = defaults.baud_rate
        try:
            if stored.get("baud_rate"):
                baud_rate = int(stored["baud_rate"])
        except ValueError:
            pass

        device_class = stored.get("preferred_device_class") or defaults.preferred_device_class
        if device_class not in (DeviceClass.READER, DeviceClass.GENERIC):
            device_class = defaults.preferred_device_class

        input_mode = stored.get("input_mode") or defaults.input_mode
        if input_mode not in (InputMode.SERIAL, InputMode.KEYBOARD):
            input_mode = defaults.input_mode

        return ReaderSettings(
            auto_connect_on_startup=_to_bool(
                stored.get("auto_connect_on_startup"), defaults.auto_connect_on_startup
            ),
            auto_connect_on_device_plug=_to_bool(
                stored.get("auto_connect_on_device_plug"), defaults.auto_connect_on_device_plug
            ),
            play_sound_on_scan=_to_bool(
                stored.get("play_sound_on_scan"), defaults.play_sound_on_scan
            ),
            baud_rate=baud_rate,
            preferred_device_class=device_class,
            last_connected_port=stored.get("last_connected_port") or None,
            input_mode=input_mode,
        )

    def update_settings(self, updates: Dict[str, Any]) -> ReaderSettings:
        """Persist a partial update; unknown keys are ignored"""
        known = set(ReaderSettings.field_names())
        for key, value in updates.items():
            if key not in known:
                continue
            if key == "last_connected_port":
                self.set_last_connected_port(value)
            elif key in BOOL_FIELDS:
                self.setting_repo.set(key, "true" if value else "false")
            else:
                self.setting_repo.set(key, str(value))
        return self.get_settings()

    def get_last_connected_port(self) -> Optional[str]:
        return self.setting_repo.get_value("last_connected_port") or None

    def set_last_connected_port(self, port_name: Optional[str]) -> None:
        if port_name:
            self.setting_repo.set(
                "last_connected_port", port_name, "Last port a reader was connected on"
            )
        else:
            self.setting_repo.delete("last_connected_port")


# Global instance backed by the SQLite settings table
config_manager = ReaderConfigManager()
