from dataclasses import dataclass, asdict
from typing import Optional
from datetime import datetime


class EmployeeStatus:
    """Employee status values stored in the employees table"""
    ACTIVE = 'Active'
    INACTIVE = 'Inactive'


@dataclass
class Employee:
    """Registered card holder"""

    card_id: str
    name: str
    department: Optional[str] = None
    status: str = EmployeeStatus.ACTIVE
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return (self.status or '').strip().lower() == EmployeeStatus.ACTIVE.lower()

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return asdict(self)
