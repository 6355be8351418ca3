from dataclasses import dataclass
from typing import Dict, Any, Optional
from datetime import datetime

from cardclock.models.attendance import AttendanceLogEntry
from cardclock.models.employee import Employee


@dataclass(frozen=True)
class ScanEvent:
    """One physical card presentation as delivered by the reader"""
    raw_card_id: str
    timestamp: datetime


class ScanResult:
    """Kinds of scan outcome"""
    CLOCKED_IN = 'clocked_in'
    CLOCKED_OUT = 'clocked_out'
    UNKNOWN_CARD = 'unknown_card'
    INACTIVE_CARD = 'inactive_card'
    REJECTED = 'rejected'


MESSAGES = {
    ScanResult.CLOCKED_IN: 'Clocked IN',
    ScanResult.CLOCKED_OUT: 'Clocked OUT',
    ScanResult.UNKNOWN_CARD: 'Unknown card.',
    ScanResult.INACTIVE_CARD: 'Card inactive.',
    ScanResult.REJECTED: 'Scan rejected.',
}


@dataclass
class ScanOutcome:
    """Result of resolving one scan against the attendance log"""
    kind: str
    card_id: str
    timestamp: datetime
    record: Optional[AttendanceLogEntry] = None
    employee: Optional[Employee] = None
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind in (ScanResult.CLOCKED_IN, ScanResult.CLOCKED_OUT)

    @property
    def message(self) -> str:
        if self.kind == ScanResult.REJECTED and self.reason:
            return f"Scan rejected: {self.reason}"
        return MESSAGES.get(self.kind, self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses and live events"""
        return {
            'kind': self.kind,
            'success': self.success,
            'message': self.message,
            'card_id': self.card_id,
            'timestamp': self.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            'record': self.record.to_dict() if self.record else None,
            'employee': self.employee.to_dict() if self.employee else None,
            'reason': self.reason,
        }
