import random
from datetime import datetime, timedelta

from cardclock.models.attendance import AttendanceLogEntry, AttendanceStatus
from cardclock.models.employee import EmployeeStatus
from cardclock.models.scan import ScanResult
from cardclock.services.attendance_service import AttendanceReportService

DAY = datetime(2024, 5, 6)


def at(hour, minute=0, second=0, day=DAY):
    return day.replace(hour=hour, minute=minute, second=second)


def test_clock_in_out_and_in_again(engine, attendance_repo, register):
    register("A100", "Alice", "Engineering")

    first = engine.process_scan("A100", at(9))
    assert first.kind == ScanResult.CLOCKED_IN
    assert first.record.date == "2024-05-06"
    assert first.record.time_in == "09:00:00"
    assert first.record.time_out is None
    assert first.record.status == AttendanceStatus.IN

    second = engine.process_scan("A100", at(17))
    assert second.kind == ScanResult.CLOCKED_OUT
    assert second.record.id == first.record.id
    stored = attendance_repo.get_by_id(first.record.id)
    assert stored.time_out == "17:00:00"
    assert stored.status == AttendanceStatus.OUT
    assert stored.total_hours() == "8h 0m"

    third = engine.process_scan("A100", at(17, 5))
    assert third.kind == ScanResult.CLOCKED_IN
    assert third.record.id != first.record.id
    assert attendance_repo.count() == 2


def test_unknown_card_inserts_nothing(engine, attendance_repo):
    outcome = engine.process_scan("Z999", at(9))

    assert outcome.kind == ScanResult.UNKNOWN_CARD
    assert not outcome.success
    assert attendance_repo.count() == 0


def test_inactive_card_never_mutates(engine, attendance_repo, register):
    register("B200", "Bob", status=EmployeeStatus.INACTIVE)

    for hour in (8, 9, 10):
        outcome = engine.process_scan("B200", at(hour))
        assert outcome.kind == ScanResult.INACTIVE_CARD
        assert outcome.employee.name == "Bob"

    assert attendance_repo.count() == 0


def test_active_status_is_case_insensitive(engine, register):
    register("C300", status="ACTIVE")

    assert engine.process_scan("C300", at(9)).kind == ScanResult.CLOCKED_IN


def test_empty_card_id_is_rejected(engine, attendance_repo):
    for raw in ("", "   ", "\t", None):
        outcome = engine.process_scan(raw, at(9))
        assert outcome.kind == ScanResult.REJECTED
        assert outcome.reason == "empty"
    assert attendance_repo.count() == 0


def test_card_id_is_trimmed(engine, register):
    register("A100")

    outcome = engine.process_scan("  A100\r", at(9))

    assert outcome.kind == ScanResult.CLOCKED_IN
    assert outcome.card_id == "A100"


def test_repeated_tap_with_same_timestamp_alternates(engine, register):
    register("A100")
    moment = at(12)

    kinds = [engine.process_scan("A100", moment).kind for _ in range(4)]

    assert kinds == [
        ScanResult.CLOCKED_IN,
        ScanResult.CLOCKED_OUT,
        ScanResult.CLOCKED_IN,
        ScanResult.CLOCKED_OUT,
    ]


def test_scan_after_midnight_starts_fresh_cycle(engine, attendance_repo, register):
    register("A100")

    evening = engine.process_scan("A100", at(23, 59, 59))
    morning = engine.process_scan("A100", at(0, 0, 1, day=DAY + timedelta(days=1)))

    assert evening.kind == ScanResult.CLOCKED_IN
    assert morning.kind == ScanResult.CLOCKED_IN
    assert morning.record.date == "2024-05-07"
    # The previous day's entry is left open
    assert attendance_repo.get_by_id(evening.record.id).is_open


def test_inconsistent_entry_opens_new_one_and_is_counted(engine, attendance_repo, register):
    register("A100")
    broken = attendance_repo.create(
        AttendanceLogEntry(
            card_id="A100",
            employee_name="Alice",
            date="2024-05-06",
            time_in="08:00:00",
            time_out="08:30:00",
            status=AttendanceStatus.IN,
        )
    )

    outcome = engine.process_scan("A100", at(9))

    assert outcome.kind == ScanResult.CLOCKED_IN
    assert outcome.record.id != broken.id
    assert engine.fallback_count == 1
    assert attendance_repo.get_by_id(broken.id).time_out == "08:30:00"


def test_statuses_alternate_for_random_orderings(engine, attendance_repo, register):
    cards = ["A100", "B200", "C300", "D400"]
    for card in cards:
        register(card, name=f"Holder {card}")

    rng = random.Random(20240506)
    taps = [card for card in cards for _ in range(rng.randint(1, 9))]
    rng.shuffle(taps)

    moment = at(7)
    for card in taps:
        moment += timedelta(seconds=rng.randint(0, 600))
        engine.process_scan(card, moment)

    logs = attendance_repo.get_logs("2024-05-06", "2024-05-06")
    for card in cards:
        tapped = taps.count(card)
        entries = sorted((e for e in logs if e.card_id == card), key=lambda e: e.id)
        # Each row is one IN/OUT cycle: every row but the last is closed
        assert len(entries) == (tapped + 1) // 2
        assert all(e.status == AttendanceStatus.OUT for e in entries[:-1])
        expected_last = AttendanceStatus.IN if tapped % 2 else AttendanceStatus.OUT
        assert entries[-1].status == expected_last


def test_today_report_stats(engine, employee_repo, attendance_repo, register):
    register("A100", "Alice")
    register("B200", "Bob", "Support")
    register("C300", "Carol")
    now = datetime.now().replace(microsecond=0)
    engine.process_scan("A100", now)
    engine.process_scan("B200", now)

    report = AttendanceReportService(employee_repo, attendance_repo).get_today()

    assert report["stats"] == {
        "present": 2,
        "checked_out": 0,
        "total_employees": 3,
        "absent": 1,
        "attendance_rate": 67,
    }
    departments = {row["card_id"]: row["department"] for row in report["logs"]}
    assert departments["B200"] == "Support"


def test_summary_counts_in_and_out(engine, employee_repo, attendance_repo, register):
    register("A100")
    engine.process_scan("A100", at(9))
    engine.process_scan("A100", at(17))
    engine.process_scan("A100", at(18))

    summary = AttendanceReportService(employee_repo, attendance_repo).get_summary(
        "2024-05-06", "2024-05-06"
    )

    assert summary == {"total_ins": 1, "total_outs": 1}
