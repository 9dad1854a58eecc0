from dataclasses import dataclass
from datetime import date, time
from typing import Optional
from uuid import UUID, uuid4

import pytest

from school_admin.api.v1.staff_attendance.report import (
    WorkSchedule,
    attendance_rate,
    build_monthly_report,
    build_staff_report,
    late_minutes,
    worked_minutes,
)


@dataclass
class Staff:
    id: UUID
    full_name: str
    employment_type: str = "FULL_TIME"


@dataclass
class Record:
    staff_id: UUID
    date: date
    status: str
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: Optional[str] = None


SCHEDULE = WorkSchedule(
    expected_start=time(8, 0),
    expected_end=time(16, 0),
    working_days={"FULL_TIME": [0, 1, 2, 3, 4], "PART_TIME": [0, 2, 4]},
)

# March 2025: starts on a Saturday, 31 days, 21 weekdays
YEAR, MONTH = 2025, 3


def _weekdays(year: int, month: int, weekdays) -> list:
    days = []
    d = date(year, month, 1)
    while d.month == month:
        if d.weekday() in weekdays:
            days.append(d)
        d = date.fromordinal(d.toordinal() + 1)
    return days


def test_no_records_means_every_day_absent_and_zero_rate() -> None:
    staff = Staff(uuid4(), "Amina Bello")
    report = build_staff_report(staff, [], YEAR, MONTH, SCHEDULE)

    assert report.total_days == 31
    assert len(report.days) == 31
    assert all(d.status == "Absent" and not d.has_record for d in report.days)
    assert report.working_days == 21
    assert report.absent_days == 21
    assert report.attendance_rate == 0
    assert report.worked_minutes == 0
    assert report.missed_minutes == 21 * 480


def test_present_every_working_day_gives_full_rate() -> None:
    staff = Staff(uuid4(), "Amina Bello")
    records = [
        Record(staff.id, d, "Present", time(8, 0), time(16, 0))
        for d in _weekdays(YEAR, MONTH, range(5))
    ]
    report = build_staff_report(staff, records, YEAR, MONTH, SCHEDULE)

    assert report.attendance_rate == 100
    assert report.present_days == 21
    assert report.absent_days == 0
    assert report.missed_minutes == 0
    assert report.worked_minutes == 21 * 480
    # Weekends stay at the default status
    saturday = report.days[0]
    assert saturday.date == date(2025, 3, 1)
    assert saturday.status == "Absent"
    assert saturday.is_working_day is False
    assert saturday.missed_minutes == 0


def test_minutes_for_late_and_short_days() -> None:
    staff = Staff(uuid4(), "Amina Bello")
    records = [
        Record(staff.id, date(2025, 3, 3), "Late", time(8, 45), time(16, 0)),
        Record(staff.id, date(2025, 3, 4), "Half Day", time(8, 0), time(12, 0)),
    ]
    report = build_staff_report(staff, records, YEAR, MONTH, SCHEDULE)
    monday, tuesday = report.days[2], report.days[3]

    assert (monday.worked_minutes, monday.late_minutes, monday.missed_minutes) == (435, 45, 45)
    assert (tuesday.worked_minutes, tuesday.late_minutes, tuesday.missed_minutes) == (240, 0, 240)
    assert report.late_days == 1
    assert report.half_days == 1
    assert report.late_minutes == 45
    # 1 + 0.5 attended out of 21 working days
    assert report.attendance_rate == 7


def test_records_without_times_count_as_full_or_half_days() -> None:
    record = Record(uuid4(), date(2025, 3, 3), "Present")
    assert worked_minutes(record, SCHEDULE) == 480
    assert late_minutes(record, SCHEDULE) == 0

    half = Record(uuid4(), date(2025, 3, 3), "Half Day")
    assert worked_minutes(half, SCHEDULE) == 240

    absent = Record(uuid4(), date(2025, 3, 3), "Absent", time(9, 0), time(10, 0))
    assert worked_minutes(absent, SCHEDULE) == 0
    assert late_minutes(absent, SCHEDULE) == 0


def test_part_time_staff_only_expected_on_their_weekdays() -> None:
    staff = Staff(uuid4(), "Paul Part", employment_type="PART_TIME")
    records = [Record(staff.id, d, "Present") for d in _weekdays(YEAR, MONTH, (0, 2, 4))]
    report = build_staff_report(staff, records, YEAR, MONTH, SCHEDULE)

    assert report.working_days == len(records)
    assert report.attendance_rate == 100
    tuesday = report.days[3]
    assert tuesday.is_working_day is False


def test_unknown_employment_type_falls_back_to_full_time_days() -> None:
    assert SCHEDULE.is_working_day("SEASONAL", date(2025, 3, 4)) is True
    assert SCHEDULE.is_working_day("SEASONAL", date(2025, 3, 1)) is False


@pytest.mark.parametrize(
    "credit, working_days, expected",
    [(0, 0, 0), (0, 20, 0), (10, 20, 50), (1.5, 21, 7), (25, 20, 100), (20.5, 21, 98)],
)
def test_attendance_rate(credit, working_days, expected) -> None:
    assert attendance_rate(credit, working_days) == expected


def test_monthly_report_covers_every_staff_member() -> None:
    amina = Staff(uuid4(), "Amina Bello")
    idle = Staff(uuid4(), "Idle Ivo")
    records = [
        Record(amina.id, date(2025, 3, 3), "Present", time(8, 0), time(16, 0)),
        Record(amina.id, date(2025, 3, 4), "Late", time(9, 0), time(16, 0)),
        # Outside the month and unknown staff are ignored
        Record(amina.id, date(2025, 4, 1), "Present"),
        Record(uuid4(), date(2025, 3, 5), "Present"),
    ]
    report = build_monthly_report([amina, idle], records, YEAR, MONTH, SCHEDULE)

    assert report.month == "2025-03"
    assert report.month_name == "March 2025"
    assert report.total_staff == 2
    assert report.total_records == 2
    assert report.overall_stats["present"] == 1
    assert report.overall_stats["late"] == 1
    assert [r.full_name for r in report.staff_reports] == ["Amina Bello", "Idle Ivo"]
    assert report.staff_reports[1].attendance_rate == 0
    # 2 attended days out of 42 expected across both members
    assert report.overall_stats["attendance_rate"] == 5


def test_expected_minutes_never_negative() -> None:
    inverted = WorkSchedule(time(16, 0), time(8, 0), {})
    assert inverted.expected_minutes == 0
