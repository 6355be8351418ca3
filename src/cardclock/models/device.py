from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class DeviceDescriptor:
    """Serial-capable device seen in an attach or detach notification"""

    port_name: Optional[str]
    device_name: str = ""
    device_caption: str = ""
    pnp_id: str = ""
    is_reader_class: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConnectionStatus:
    """Reader connection states"""
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


@dataclass(frozen=True)
class ConnectionState:
    """Connection state of the single reader; port_name is set unless disconnected"""

    status: str = ConnectionStatus.DISCONNECTED
    port_name: Optional[str] = None

    @classmethod
    def disconnected(cls) -> 'ConnectionState':
        return cls(ConnectionStatus.DISCONNECTED, None)

    @classmethod
    def connecting(cls, port_name: str) -> 'ConnectionState':
        return cls(ConnectionStatus.CONNECTING, port_name)

    @classmethod
    def connected(cls, port_name: str) -> 'ConnectionState':
        return cls(ConnectionStatus.CONNECTED, port_name)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def is_disconnected(self) -> bool:
        return self.status == ConnectionStatus.DISCONNECTED

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
