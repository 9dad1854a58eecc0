import datetime as dt
from datetime import date, datetime, time
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_admin.core.enums import EmploymentType


# ----- Staff members -----
class StaffMemberCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    user_id: Optional[UUID] = None


class StaffMemberUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    employment_type: Optional[EmploymentType] = None
    user_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class StaffMemberResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: Optional[UUID] = None
    full_name: str
    employment_type: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ----- Daily records -----
class StaffRecordCreate(BaseModel):
    staff_id: UUID
    date: date
    status: str = Field(..., description="Present, Absent, Late, Half Day")
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: Optional[str] = None


class StaffRecordUpdate(BaseModel):
    date: Optional[dt.date] = None
    status: Optional[str] = None
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: Optional[str] = None


class StaffRecordResponse(BaseModel):
    id: UUID
    staff_id: UUID
    staff_name: str
    date: date
    status: str
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ----- Stats -----
class MonthStats(BaseModel):
    month: str  # YYYY-MM
    total_records: int
    present_count: int
    absent_count: int
    late_count: int
    half_day_count: int
    attendance_rate: int


class StaffStatsResponse(BaseModel):
    current_month: MonthStats
    last_month: MonthStats


# ----- Monthly report -----
class DayEntryResponse(BaseModel):
    date: date
    status: str
    is_working_day: bool
    has_record: bool
    time_in: Optional[time] = None
    time_out: Optional[time] = None
    classes_taught: str
    worked_minutes: int
    late_minutes: int
    missed_minutes: int

    class Config:
        from_attributes = True


class StaffMonthReportResponse(BaseModel):
    staff_id: UUID
    full_name: str
    employment_type: str
    total_days: int
    working_days: int
    present_days: int
    absent_days: int
    late_days: int
    half_days: int
    worked_minutes: int
    late_minutes: int
    missed_minutes: int
    attendance_rate: int
    days: List[DayEntryResponse]

    class Config:
        from_attributes = True


class MonthlyReportResponse(BaseModel):
    month: str
    month_name: str
    total_staff: int
    total_records: int
    overall_stats: Dict[str, int]
    staff_reports: List[StaffMonthReportResponse]
    generated_at: datetime

    class Config:
        from_attributes = True
