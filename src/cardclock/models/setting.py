from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional
from datetime import datetime

@dataclass
class AppSetting:
    """App setting model"""
    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class DeviceClass:
    """Classification policy names for preferred_device_class"""
    GENERIC = 'generic'
    READER = 'reader'


class InputMode:
    """How the reader delivers card identifiers"""
    SERIAL = 'serial'
    KEYBOARD = 'keyboard'


@dataclass
class ReaderSettings:
    """Operator settings for the card reader"""
    auto_connect_on_startup: bool = False
    auto_connect_on_device_plug: bool = True
    play_sound_on_scan: bool = True
    baud_rate: int = 9600
    preferred_device_class: str = DeviceClass.READER
    last_connected_port: Optional[str] = None
    input_mode: str = InputMode.SERIAL

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
