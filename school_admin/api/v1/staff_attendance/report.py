"""
Monthly staff attendance report.

Every staff member gets one entry per calendar day, "Absent" unless a record
exists for that day. Minutes are measured against the configured working
window (expected start/end) and only working days, which depend on the
member's employment type, count towards missed minutes and the rate.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from school_admin.core.enums import EmploymentType, StaffAttendanceStatus

DEFAULT_WORKING_DAYS = (0, 1, 2, 3, 4)

_CREDIT = {
    StaffAttendanceStatus.PRESENT.value: 1.0,
    StaffAttendanceStatus.LATE.value: 1.0,
    StaffAttendanceStatus.HALF_DAY.value: 0.5,
}


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


@dataclass(frozen=True)
class WorkSchedule:
    expected_start: time
    expected_end: time
    working_days: Mapping[str, Sequence[int]]

    @classmethod
    def from_settings(cls, settings) -> "WorkSchedule":
        return cls(
            expected_start=settings.staff_expected_start,
            expected_end=settings.staff_expected_end,
            working_days=settings.staff_working_days,
        )

    @property
    def expected_minutes(self) -> int:
        return max(0, _minutes(self.expected_end) - _minutes(self.expected_start))

    def is_working_day(self, employment_type: str, day: date) -> bool:
        weekdays = self.working_days.get(
            employment_type,
            self.working_days.get(EmploymentType.FULL_TIME.value, DEFAULT_WORKING_DAYS),
        )
        return day.weekday() in weekdays


@dataclass
class DayEntry:
    date: date
    status: str
    is_working_day: bool
    has_record: bool = False
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: str = ""
    worked_minutes: int = 0
    late_minutes: int = 0
    missed_minutes: int = 0


@dataclass
class StaffMonthReport:
    staff_id: UUID
    full_name: str
    employment_type: str
    total_days: int
    working_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    late_days: int = 0
    half_days: int = 0
    worked_minutes: int = 0
    late_minutes: int = 0
    missed_minutes: int = 0
    attendance_rate: int = 0
    days: List[DayEntry] = field(default_factory=list)


@dataclass
class MonthlyReport:
    month: str
    month_name: str
    total_staff: int
    total_records: int
    overall_stats: Dict[str, int]
    staff_reports: List[StaffMonthReport]
    generated_at: datetime


def worked_minutes(record, schedule: WorkSchedule) -> int:
    """Minutes worked on the day of one record."""
    if record.status == StaffAttendanceStatus.ABSENT.value:
        return 0
    if record.time_in is not None and record.time_out is not None:
        return max(0, _minutes(record.time_out) - _minutes(record.time_in))
    if record.status == StaffAttendanceStatus.HALF_DAY.value:
        return schedule.expected_minutes // 2
    return schedule.expected_minutes


def late_minutes(record, schedule: WorkSchedule) -> int:
    if record.status == StaffAttendanceStatus.ABSENT.value or record.time_in is None:
        return 0
    return max(0, _minutes(record.time_in) - _minutes(schedule.expected_start))


def attendance_rate(credit: float, working_days: int) -> int:
    """Rounded percentage, 0 without working days and never above 100."""
    if working_days <= 0:
        return 0
    return min(100, int(100 * credit / working_days + 0.5))


def build_staff_report(
    staff,
    records: Iterable,
    year: int,
    month: int,
    schedule: WorkSchedule,
) -> StaffMonthReport:
    """Calendar for one staff member. records must all belong to this member and month."""
    by_day = {r.date.day: r for r in records}
    days_in_month = calendar.monthrange(year, month)[1]
    report = StaffMonthReport(
        staff_id=staff.id,
        full_name=staff.full_name,
        employment_type=staff.employment_type,
        total_days=days_in_month,
    )
    credit = 0.0

    for day_number in range(1, days_in_month + 1):
        day = date(year, month, day_number)
        working = schedule.is_working_day(staff.employment_type, day)
        entry = DayEntry(date=day, status=StaffAttendanceStatus.ABSENT.value, is_working_day=working)
        record = by_day.get(day_number)
        if record is not None:
            entry.has_record = True
            entry.status = record.status
            entry.time_in = record.time_in
            entry.time_out = record.time_out
            entry.classes_taught = record.classes_taught or ""
            entry.worked_minutes = worked_minutes(record, schedule)
            entry.late_minutes = late_minutes(record, schedule)

            if record.status == StaffAttendanceStatus.PRESENT.value:
                report.present_days += 1
            elif record.status == StaffAttendanceStatus.LATE.value:
                report.late_days += 1
            elif record.status == StaffAttendanceStatus.HALF_DAY.value:
                report.half_days += 1

        if working:
            report.working_days += 1
            entry.missed_minutes = max(0, schedule.expected_minutes - entry.worked_minutes)
            credit += _CREDIT.get(entry.status, 0.0)
            if entry.status == StaffAttendanceStatus.ABSENT.value:
                report.absent_days += 1

        report.worked_minutes += entry.worked_minutes
        report.late_minutes += entry.late_minutes
        report.missed_minutes += entry.missed_minutes
        report.days.append(entry)

    report.attendance_rate = attendance_rate(credit, report.working_days)
    return report


def build_monthly_report(
    staff_members: Sequence,
    records: Iterable,
    year: int,
    month: int,
    schedule: WorkSchedule,
    generated_at: Optional[datetime] = None,
) -> MonthlyReport:
    """Report for every given staff member; records outside the month are ignored."""
    records_by_staff: Dict[UUID, List] = {s.id: [] for s in staff_members}
    total_records = 0
    status_counts = {s.value: 0 for s in StaffAttendanceStatus}
    for r in records:
        if r.date.year != year or r.date.month != month or r.staff_id not in records_by_staff:
            continue
        records_by_staff[r.staff_id].append(r)
        total_records += 1
        status_counts[r.status] = status_counts.get(r.status, 0) + 1

    staff_reports = [
        build_staff_report(s, records_by_staff[s.id], year, month, schedule) for s in staff_members
    ]

    total_working = sum(r.working_days for r in staff_reports)
    total_credit = sum(
        _CREDIT.get(d.status, 0.0) for r in staff_reports for d in r.days if d.is_working_day
    )
    return MonthlyReport(
        month=f"{year:04d}-{month:02d}",
        month_name=f"{calendar.month_name[month]} {year}",
        total_staff=len(staff_members),
        total_records=total_records,
        overall_stats={
            "present": status_counts[StaffAttendanceStatus.PRESENT.value],
            "absent": status_counts[StaffAttendanceStatus.ABSENT.value],
            "late": status_counts[StaffAttendanceStatus.LATE.value],
            "half_days": status_counts[StaffAttendanceStatus.HALF_DAY.value],
            "worked_minutes": sum(r.worked_minutes for r in staff_reports),
            "missed_minutes": sum(r.missed_minutes for r in staff_reports),
            "attendance_rate": attendance_rate(total_credit, total_working),
        },
        staff_reports=staff_reports,
        generated_at=generated_at or datetime.utcnow(),
    )
