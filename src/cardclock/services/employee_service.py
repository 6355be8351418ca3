from typing import List, Optional

from cardclock.models.employee import Employee, EmployeeStatus
from cardclock.repositories import employee_repo as default_employee_repo
from cardclock.shared.logger import app_logger


class EmployeeService:
    """Registration of cards scanned at the reader"""

    def __init__(self, employee_repo=None):
        self.employee_repo = employee_repo or default_employee_repo

    def register(self, card_id: str, name: str, department: str = None) -> Employee:
        """Register a card; raises ValueError on missing fields, DuplicateKeyError if taken"""
        card_id = (card_id or "").strip()
        name = (name or "").strip()

        if not card_id or card_id == "-":
            raise ValueError("Scan a card first to fill Card ID.")
        if not name:
            raise ValueError("Enter a name.")

        employee = Employee(
            card_id=card_id,
            name=name,
            department=(department or "").strip() or None,
            status=EmployeeStatus.ACTIVE,
        )
        created = self.employee_repo.create(employee)
        app_logger.info(f"Registered card {card_id} for {name}")
        return created

    def get(self, card_id: str) -> Optional[Employee]:
        return self.employee_repo.get_by_card_id((card_id or "").strip())

    def search(self, search: str = None) -> List[Employee]:
        return self.employee_repo.get_all((search or "").strip() or None)

    def update(self, card_id: str, name: str = None, department: str = None) -> Optional[Employee]:
        """Rename or move a registered card holder; returns None if the card is unknown"""
        if name is not None and not name.strip():
            raise ValueError("Enter a name.")
        updated = self.employee_repo.update(
            card_id,
            name=name.strip() if name is not None else None,
            department=department.strip() if department is not None else None,
        )
        return self.employee_repo.get_by_card_id(card_id) if updated else None

    def set_status(self, card_id: str, status: str) -> bool:
        """Activate or deactivate a card; employees are never deleted"""
        normalized = (status or "").strip().lower()
        if normalized == EmployeeStatus.ACTIVE.lower():
            status = EmployeeStatus.ACTIVE
        elif normalized == EmployeeStatus.INACTIVE.lower():
            status = EmployeeStatus.INACTIVE
        else:
            raise ValueError(f"Unknown status '{status}'")

        updated = self.employee_repo.update_status(card_id, status)
        if updated:
            app_logger.info(f"Card {card_id} set to {status}")
        return updated


employee_service = EmployeeService()
