import sqlite3
from typing import List, Optional
from cardclock.models.employee import Employee
from cardclock.database.connection import db_manager


class DuplicateKeyError(Exception):
    """Raised when a card id is already registered"""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__("Card already registered.")


class EmployeeRepository:
    """Employee registration database operations"""

    def __init__(self, db=None):
        self.db = db or db_manager

    def create(self, employee: Employee) -> Employee:
        """Register a new employee, raising DuplicateKeyError if the card is taken"""
        query = '''
            INSERT INTO employees (card_id, name, department, status)
            VALUES (?, ?, ?, ?)
        '''
        try:
            self.db.execute_query(query, (
                employee.card_id, employee.name, employee.department, employee.status
            ))
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(employee.card_id) from e

        return self.get_by_card_id(employee.card_id)

    def get_by_card_id(self, card_id: str) -> Optional[Employee]:
        """Get employee by card id"""
        row = self.db.fetch_one("SELECT * FROM employees WHERE card_id = ?", (card_id,))
        return self._row_to_employee(row) if row else None

    def get_all(self, search: str = None) -> List[Employee]:
        """Get all employees ordered by name, optionally filtered by name or card id"""
        if search:
            like = f"%{search}%"
            rows = self.db.fetch_all(
                "SELECT * FROM employees WHERE name LIKE ? OR card_id LIKE ? ORDER BY name",
                (like, like)
            )
        else:
            rows = self.db.fetch_all("SELECT * FROM employees ORDER BY name")
        return [self._row_to_employee(row) for row in rows]

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS count FROM employees")
        return row['count'] if row else 0

    def update_status(self, card_id: str, status: str) -> bool:
        cursor = self.db.execute_query(
            "UPDATE employees SET status = ? WHERE card_id = ?", (status, card_id)
        )
        return cursor.rowcount > 0

    def update(self, card_id: str, name: str = None, department: str = None) -> bool:
        """Update name and/or department; the card id itself never changes"""
        updates = {}
        if name is not None:
            updates['name'] = name
        if department is not None:
            updates['department'] = department
        if not updates:
            return False

        set_clause = ', '.join([f"{key} = ?" for key in updates.keys()])
        query = f"UPDATE employees SET {set_clause} WHERE card_id = ?"
        cursor = self.db.execute_query(query, (*updates.values(), card_id))
        return cursor.rowcount > 0

    def _row_to_employee(self, row) -> Employee:
        return Employee(
            card_id=row['card_id'],
            name=row['name'],
            department=row['department'],
            status=row['status'],
            created_at=row['created_at'],
        )
