from cardclock.models.employee import Employee, EmployeeStatus
from cardclock.models.attendance import AttendanceLogEntry, AttendanceStatus
from cardclock.models.device import DeviceDescriptor, ConnectionState, ConnectionStatus
from cardclock.models.setting import AppSetting, ReaderSettings, DeviceClass, InputMode
from cardclock.models.scan import ScanEvent, ScanOutcome, ScanResult

__all__ = [
    "Employee",
    "EmployeeStatus",
    "AttendanceLogEntry",
    "AttendanceStatus",
    "DeviceDescriptor",
    "ConnectionState",
    "ConnectionStatus",
    "AppSetting",
    "ReaderSettings",
    "DeviceClass",
    "InputMode",
    "ScanEvent",
    "ScanOutcome",
    "ScanResult",
]
