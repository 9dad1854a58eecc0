from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from school_admin.core.enums import DisciplineCaseStatus


class DisciplineCaseCreate(BaseModel):
    student_id: UUID
    class_id: Optional[UUID] = None  # defaults to the student's class
    case_description: str = Field(..., min_length=1)


class DisciplineCaseStatusUpdate(BaseModel):
    status: DisciplineCaseStatus
    resolution_notes: Optional[str] = None


class DisciplineCaseResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    student_sex: Optional[str] = None
    class_id: Optional[UUID] = None
    class_name: Optional[str] = None
    case_description: str
    status: str
    recorded_by: Optional[UUID] = None
    recorded_by_name: Optional[str] = None
    recorded_at: datetime
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
