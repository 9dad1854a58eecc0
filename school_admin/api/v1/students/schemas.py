from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    student_code: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=255)
    sex: str = Field("U", max_length=10)
    date_of_birth: Optional[date] = None
    class_id: Optional[UUID] = None
    guardian_user_id: Optional[UUID] = None
    guardian_contact: Optional[str] = Field(None, max_length=50)
    registration_date: Optional[date] = None


class StudentUpdate(BaseModel):
    student_code: Optional[str] = Field(None, min_length=1, max_length=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    sex: Optional[str] = Field(None, max_length=10)
    date_of_birth: Optional[date] = None
    class_id: Optional[UUID] = None
    guardian_user_id: Optional[UUID] = None
    guardian_contact: Optional[str] = Field(None, max_length=50)


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_code: str
    full_name: str
    sex: str
    date_of_birth: Optional[date] = None
    class_id: Optional[UUID] = None
    class_name: Optional[str] = None
    guardian_user_id: Optional[UUID] = None
    guardian_contact: Optional[str] = None
    registration_date: date
    created_at: datetime
    updated_at: datetime
