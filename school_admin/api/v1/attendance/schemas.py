from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


# ----- Sessions -----
class SessionStart(BaseModel):
    class_id: UUID
    session_time: Optional[datetime] = None


class SessionResponse(BaseModel):
    id: UUID
    class_id: UUID
    class_name: Optional[str] = None
    taken_by: Optional[UUID] = None
    session_time: datetime
    created_at: datetime


# ----- Marking -----
class AttendanceMark(BaseModel):
    """Presence of one student; status is present or absent."""

    student_id: UUID
    status: str


class BulkMarkRequest(BaseModel):
    records: List[AttendanceMark]


class BulkMarkResponse(BaseModel):
    message: str
    created: int
    updated: int


# ----- Reads -----
class AttendanceSummary(BaseModel):
    days: int
    present: int
    absent: int


class RosterStudent(BaseModel):
    id: UUID
    full_name: str
    sex: str


class ClassOption(BaseModel):
    id: UUID
    name: str


class ExportRow(BaseModel):
    id: UUID
    full_name: str
    sex: str
    statuses: List[str]  # "P", "A" or "" per session
    total_present: int
    total_absent: int


class AttendanceExport(BaseModel):
    date: date
    class_id: UUID
    class_name: str
    sessions: List[str]  # HH:MM per session, in session order
    rows: List[ExportRow]
