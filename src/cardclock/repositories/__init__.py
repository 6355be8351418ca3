from cardclock.repositories.employee_repository import EmployeeRepository, DuplicateKeyError
from cardclock.repositories.attendance_repository import AttendanceRepository
from cardclock.repositories.setting_repository import SettingRepository

# Repository instances
employee_repo = EmployeeRepository()
attendance_repo = AttendanceRepository()
setting_repo = SettingRepository()


__all__ = [
    "EmployeeRepository",
    "AttendanceRepository",
    "SettingRepository",
    "DuplicateKeyError",
    "employee_repo",
    "attendance_repo",
    "setting_repo",
]
