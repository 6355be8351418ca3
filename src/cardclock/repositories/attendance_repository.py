from typing import List, Optional, Tuple
from datetime import date, datetime
from cardclock.models.attendance import AttendanceLogEntry, AttendanceStatus, DATE_FORMAT
from cardclock.database.connection import db_manager


def _date_param(value) -> Optional[str]:
    """Accept date/datetime objects or YYYY-MM-DD strings"""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime(DATE_FORMAT)
    return str(value)


class AttendanceRepository:
    """Attendance log database operations"""

    def __init__(self, db=None):
        self.db = db or db_manager

    def create(self, entry: AttendanceLogEntry) -> AttendanceLogEntry:
        """Insert a log entry and return it with the storage-assigned id"""
        query = """
            INSERT INTO attendance_logs (
                card_id, employee_name, date, time_in, time_out, status
            ) VALUES (?, ?, ?, ?, ?, ?)
        """
        cursor = self.db.execute_query(
            query,
            (
                entry.card_id,
                entry.employee_name,
                entry.date,
                entry.time_in,
                entry.time_out,
                entry.status,
            ),
        )
        return self.get_by_id(cursor.lastrowid)

    def get_by_id(self, log_id: int) -> Optional[AttendanceLogEntry]:
        row = self.db.fetch_one(
            "SELECT * FROM attendance_logs WHERE id = ?", (log_id,)
        )
        return self._row_to_entry(row) if row else None

    def get_last_for_card(self, card_id: str, day) -> Optional[AttendanceLogEntry]:
        """Most recent entry for a card on a given local day"""
        query = """
            SELECT * FROM attendance_logs
            WHERE card_id = ? AND date = ?
            ORDER BY id DESC
            LIMIT 1
        """
        row = self.db.fetch_one(query, (card_id, _date_param(day)))
        return self._row_to_entry(row) if row else None

    def set_checkout(self, log_id: int, time_out: str) -> bool:
        """Close an open entry; status and time_out change together"""
        cursor = self.db.execute_query(
            "UPDATE attendance_logs SET time_out = ?, status = ? WHERE id = ?",
            (time_out, AttendanceStatus.OUT, log_id),
        )
        return cursor.rowcount > 0

    def get_logs(
        self, start_date=None, end_date=None, today_only: bool = False
    ) -> List[AttendanceLogEntry]:
        """Logs for today (newest first) or for an optional inclusive date range"""
        if today_only:
            rows = self.db.fetch_all(
                "SELECT * FROM attendance_logs WHERE date = ? ORDER BY id DESC",
                (datetime.now().strftime(DATE_FORMAT),),
            )
        else:
            query = """
                SELECT * FROM attendance_logs
                WHERE (? IS NULL OR date >= ?) AND (? IS NULL OR date <= ?)
                ORDER BY date DESC, time_in DESC
            """
            start, end = _date_param(start_date), _date_param(end_date)
            rows = self.db.fetch_all(query, (start, start, end, end))
        return [self._row_to_entry(row) for row in rows]

    def get_summary(self, start_date=None, end_date=None) -> Tuple[int, int]:
        """(IN count, OUT count) over an optional inclusive date range"""
        query = """
            SELECT
                SUM(CASE WHEN status = 'IN' THEN 1 ELSE 0 END) AS total_ins,
                SUM(CASE WHEN status = 'OUT' THEN 1 ELSE 0 END) AS total_outs
            FROM attendance_logs
            WHERE (? IS NULL OR date >= ?) AND (? IS NULL OR date <= ?)
        """
        start, end = _date_param(start_date), _date_param(end_date)
        row = self.db.fetch_one(query, (start, start, end, end))
        if not row:
            return 0, 0
        return row['total_ins'] or 0, row['total_outs'] or 0

    def count(self) -> int:
        row = self.db.fetch_one("SELECT COUNT(*) AS count FROM attendance_logs")
        return row['count'] if row else 0

    def _row_to_entry(self, row) -> AttendanceLogEntry:
        return AttendanceLogEntry(
            id=row['id'],
            card_id=row['card_id'],
            employee_name=row['employee_name'],
            date=row['date'],
            time_in=row['time_in'],
            time_out=row['time_out'],
            status=row['status'],
            created_at=row['created_at'],
        )
