from datetime import datetime

from cardclock.models.attendance import AttendanceLogEntry, AttendanceStatus, DATE_FORMAT, TIME_FORMAT
from cardclock.models.scan import ScanOutcome, ScanResult
from cardclock.repositories import employee_repo as default_employee_repo
from cardclock.repositories import attendance_repo as default_attendance_repo
from cardclock.shared.logger import app_logger


class AttendanceToggleEngine:
    """Turns a card id and timestamp into a clock-in or clock-out.

    Every call is a new physical tap, so two calls with the same card and
    timestamp alternate IN/OUT rather than being idempotent. Callers must
    serialize calls (the scan dispatcher does) to keep that alternation intact.
    """

    def __init__(self, employee_repo=None, attendance_repo=None):
        self.employee_repo = employee_repo or default_employee_repo
        self.attendance_repo = attendance_repo or default_attendance_repo
        # Times the inconsistent-entry fallback fired; should stay at zero
        self.fallback_count = 0

    def process_scan(self, card_id: str, timestamp: datetime) -> ScanOutcome:
        card_id = (card_id or "").strip()
        if not card_id:
            return ScanOutcome(ScanResult.REJECTED, card_id, timestamp, reason="empty")

        employee = self.employee_repo.get_by_card_id(card_id)
        if employee is None:
            app_logger.info(f"[SCAN] Unknown card {card_id}")
            return ScanOutcome(ScanResult.UNKNOWN_CARD, card_id, timestamp)

        if not employee.is_active:
            app_logger.info(f"[SCAN] Inactive card {card_id} ({employee.name})")
            return ScanOutcome(ScanResult.INACTIVE_CARD, card_id, timestamp, employee=employee)

        last = self.attendance_repo.get_last_for_card(card_id, timestamp.strftime(DATE_FORMAT))

        if last is None or last.status == AttendanceStatus.OUT:
            return self._clock_in(employee, timestamp)

        if last.is_open:
            time_out = timestamp.strftime(TIME_FORMAT)
            self.attendance_repo.set_checkout(last.id, time_out)
            last.time_out = time_out
            last.status = AttendanceStatus.OUT
            app_logger.info(f"[SCAN] {employee.name} ({card_id}) clocked OUT at {time_out}")
            return ScanOutcome(
                ScanResult.CLOCKED_OUT, card_id, timestamp, record=last, employee=employee
            )

        # An IN entry that already has a time_out breaks the log invariant
        self.fallback_count += 1
        app_logger.warning(
            f"[SCAN] Inconsistent attendance entry {last.id} for {card_id} "
            f"(status IN with time_out {last.time_out}); opening a new entry "
            f"(fallback #{self.fallback_count})"
        )
        return self._clock_in(employee, timestamp)

    def _clock_in(self, employee, timestamp: datetime) -> ScanOutcome:
        entry = AttendanceLogEntry.clock_in(employee.card_id, employee.name, timestamp)
        record = self.attendance_repo.create(entry)
        app_logger.info(
            f"[SCAN] {employee.name} ({employee.card_id}) clocked IN at {record.time_in}"
        )
        return ScanOutcome(
            ScanResult.CLOCKED_IN, employee.card_id, timestamp, record=record, employee=employee
        )


class AttendanceReportService:
    """Read-side queries behind the attendance screens"""

    def __init__(self, employee_repo=None, attendance_repo=None):
        self.employee_repo = employee_repo or default_employee_repo
        self.attendance_repo = attendance_repo or default_attendance_repo

    def get_logs(self, start_date=None, end_date=None):
        return self.attendance_repo.get_logs(start_date, end_date)

    def get_summary(self, start_date=None, end_date=None):
        total_ins, total_outs = self.attendance_repo.get_summary(start_date, end_date)
        return {"total_ins": total_ins, "total_outs": total_outs}

    def get_today(self):
        """Today's log plus headline numbers"""
        today = datetime.now().strftime(DATE_FORMAT)
        logs = self.attendance_repo.get_logs(today_only=True)
        total_ins, total_outs = self.attendance_repo.get_summary(today, today)
        total_employees = self.employee_repo.count()

        departments = {
            employee.card_id: employee.department
            for employee in self.employee_repo.get_all()
        }
        rows = []
        for entry in logs:
            row = entry.to_dict()
            row["department"] = departments.get(entry.card_id) or ""
            rows.append(row)

        rate = (total_ins * 100.0 / total_employees) if total_employees else 0
        return {
            "date": today,
            "logs": rows,
            "stats": {
                "present": total_ins,
                "checked_out": total_outs,
                "total_employees": total_employees,
                "absent": max(0, total_employees - total_ins),
                "attendance_rate": round(rate),
            },
        }


# Global instances
attendance_engine = AttendanceToggleEngine()
attendance_report_service = AttendanceReportService()
