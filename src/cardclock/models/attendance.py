from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional
from datetime import datetime

DATE_FORMAT = '%Y-%m-%d'
TIME_FORMAT = '%H:%M:%S'


class AttendanceStatus:
    """Status of an attendance log entry"""
    IN = 'IN'
    OUT = 'OUT'


@dataclass
class AttendanceLogEntry:
    """One clock-in/clock-out cycle for a card on a given local day"""
    card_id: str
    employee_name: str  # copied from the employee at clock-in time
    date: str  # YYYY-MM-DD
    time_in: str  # HH:MM:SS
    time_out: Optional[str] = None
    status: str = AttendanceStatus.IN
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        """IN entry that has not been clocked out yet"""
        return self.status == AttendanceStatus.IN and not (self.time_out or '').strip()

    @classmethod
    def clock_in(cls, card_id: str, employee_name: str, timestamp: datetime) -> 'AttendanceLogEntry':
        return cls(
            card_id=card_id,
            employee_name=employee_name,
            date=timestamp.strftime(DATE_FORMAT),
            time_in=timestamp.strftime(TIME_FORMAT),
            time_out=None,
            status=AttendanceStatus.IN,
        )

    def total_hours(self) -> Optional[str]:
        """Worked time of a closed entry as 'Xh Ym', None while open"""
        if not self.time_in or not self.time_out:
            return None
        try:
            t_in = datetime.strptime(self.time_in, TIME_FORMAT)
            t_out = datetime.strptime(self.time_out, TIME_FORMAT)
        except ValueError:
            return None
        minutes = int((t_out - t_in).total_seconds() // 60)
        return f"{minutes // 60}h {minutes % 60}m"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses"""
        data = asdict(self)
        data['total_hours'] = self.total_hours()
        return data
