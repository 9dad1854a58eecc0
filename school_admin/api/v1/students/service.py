"""
Students. Privileged roles see every student of the tenant; any other account
only sees the students it is linked to as guardian.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.auth.models import User
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import ActivityType, is_privileged
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import AttendanceRecord, DisciplineCase, FeePayment, SchoolClass, Student

from .schemas import StudentCreate, StudentResponse, StudentUpdate


def _to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        student_code=s.student_code,
        full_name=s.full_name,
        sex=s.sex,
        date_of_birth=s.date_of_birth,
        class_id=s.class_id,
        class_name=s.school_class.name if s.school_class else None,
        guardian_user_id=s.guardian_user_id,
        guardian_contact=s.guardian_contact,
        registration_date=s.registration_date,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def visible_students(current_user: CurrentUser):
    """Base select of the students the caller may see."""
    stmt = select(Student).where(Student.tenant_id == current_user.tenant_id)
    if not is_privileged(current_user.role):
        stmt = stmt.where(Student.guardian_user_id == current_user.id)
    return stmt


async def get_visible_student(
    db: AsyncSession, current_user: CurrentUser, student_id: UUID
) -> Student:
    stmt = visible_students(current_user).where(Student.id == student_id).options(
        selectinload(Student.school_class)
    )
    student = (await db.execute(stmt)).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    return student


async def _check_class(db: AsyncSession, tenant_id: UUID, class_id: Optional[UUID]) -> None:
    if class_id is None:
        return
    cl = await db.get(SchoolClass, class_id)
    if not cl or cl.tenant_id != tenant_id:
        raise ServiceError("Invalid class", status.HTTP_400_BAD_REQUEST)


async def _check_guardian(db: AsyncSession, tenant_id: UUID, user_id: Optional[UUID]) -> None:
    if user_id is None:
        return
    user = await db.get(User, user_id)
    if not user or user.tenant_id != tenant_id:
        raise ServiceError("Invalid guardian user", status.HTTP_400_BAD_REQUEST)


async def _reload(db: AsyncSession, student_id: UUID) -> Student:
    stmt = select(Student).where(Student.id == student_id).options(selectinload(Student.school_class))
    return (await db.execute(stmt)).scalar_one()


async def list_students(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[UUID] = None,
) -> List[StudentResponse]:
    stmt = visible_students(current_user).options(selectinload(Student.school_class))
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    stmt = stmt.order_by(Student.full_name, Student.id)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, current_user: CurrentUser, student_id: UUID) -> StudentResponse:
    return _to_response(await get_visible_student(db, current_user, student_id))


async def create_student(
    db: AsyncSession,
    tenant_id: UUID,
    payload: StudentCreate,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> StudentResponse:
    await _check_class(db, tenant_id, payload.class_id)
    await _check_guardian(db, tenant_id, payload.guardian_user_id)
    data = payload.model_dump(exclude_none=True)
    data["student_code"] = data["student_code"].strip()
    data["full_name"] = data["full_name"].strip()
    student = Student(tenant_id=tenant_id, **data)
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Student code already exists", status.HTTP_409_CONFLICT)
    student = await _reload(db, student.id)
    await record_activity(
        db, tenant_id, user_id, ActivityType.CREATE, f"Created student: {student.full_name}",
        entity_type="student", entity_id=student.id, entity_name=student.full_name, meta=meta,
    )
    return _to_response(student)


async def update_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    payload: StudentUpdate,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> StudentResponse:
    student = (
        await db.execute(select(Student).where(Student.id == student_id, Student.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)

    changes = payload.model_dump(exclude_unset=True)
    if "class_id" in changes:
        await _check_class(db, tenant_id, changes["class_id"])
    if "guardian_user_id" in changes:
        await _check_guardian(db, tenant_id, changes["guardian_user_id"])
    for field in ("student_code", "full_name", "sex"):
        if field in changes and changes[field] is None:
            del changes[field]
        elif field in changes:
            changes[field] = changes[field].strip()
    for field, value in changes.items():
        setattr(student, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Student code already exists", status.HTTP_409_CONFLICT)
    student = await _reload(db, student_id)
    await record_activity(
        db, tenant_id, user_id, ActivityType.UPDATE, f"Updated student: {student.full_name}",
        entity_type="student", entity_id=student.id, entity_name=student.full_name, meta=meta,
    )
    return _to_response(student)


async def delete_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> None:
    student = (
        await db.execute(select(Student).where(Student.id == student_id, Student.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    name = student.full_name
    for model in (FeePayment, AttendanceRecord, DisciplineCase):
        await db.execute(delete(model).where(model.student_id == student_id))
    await db.delete(student)
    await db.commit()
    await record_activity(
        db, tenant_id, user_id, ActivityType.DELETE, f"Deleted student: {name}",
        entity_type="student", entity_id=student_id, entity_name=name, meta=meta,
    )
