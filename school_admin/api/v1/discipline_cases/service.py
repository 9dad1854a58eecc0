from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.auth.models import User
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import ActivityType, DisciplineCaseStatus
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import DisciplineCase, SchoolClass, Student

from .schemas import DisciplineCaseCreate, DisciplineCaseResponse, DisciplineCaseStatusUpdate


def _cases_query(tenant_id: UUID):
    return (
        select(
            DisciplineCase,
            Student.full_name,
            Student.sex,
            SchoolClass.name,
            User.full_name,
        )
        .outerjoin(Student, DisciplineCase.student_id == Student.id)
        .outerjoin(SchoolClass, DisciplineCase.class_id == SchoolClass.id)
        .outerjoin(User, DisciplineCase.recorded_by == User.id)
        .where(DisciplineCase.tenant_id == tenant_id)
    )


def _to_response(row) -> DisciplineCaseResponse:
    dc, student_name, student_sex, class_name, recorded_by_name = row
    return DisciplineCaseResponse(
        id=dc.id,
        student_id=dc.student_id,
        student_name=student_name,
        student_sex=student_sex,
        class_id=dc.class_id,
        class_name=class_name,
        case_description=dc.case_description,
        status=dc.status,
        recorded_by=dc.recorded_by,
        recorded_by_name=recorded_by_name,
        recorded_at=dc.recorded_at,
        resolved_by=dc.resolved_by,
        resolved_at=dc.resolved_at,
        resolution_notes=dc.resolution_notes,
    )


async def _load(db: AsyncSession, tenant_id: UUID, case_id: UUID) -> DisciplineCaseResponse:
    row = (await db.execute(_cases_query(tenant_id).where(DisciplineCase.id == case_id))).first()
    if not row:
        raise ServiceError("Discipline case not found", status.HTTP_404_NOT_FOUND)
    return _to_response(row)


async def list_cases(
    db: AsyncSession, tenant_id: UUID, case_status: Optional[DisciplineCaseStatus] = None
) -> List[DisciplineCaseResponse]:
    stmt = _cases_query(tenant_id)
    if case_status is not None:
        stmt = stmt.where(DisciplineCase.status == case_status.value)
    stmt = stmt.order_by(DisciplineCase.recorded_at.desc())
    result = await db.execute(stmt)
    return [_to_response(row) for row in result.all()]


async def create_case(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: DisciplineCaseCreate,
    meta: Optional[RequestMeta] = None,
) -> DisciplineCaseResponse:
    student = await db.get(Student, payload.student_id)
    if not student or student.tenant_id != current_user.tenant_id:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    class_id = payload.class_id or student.class_id
    if class_id is not None:
        cl = await db.get(SchoolClass, class_id)
        if not cl or cl.tenant_id != current_user.tenant_id:
            raise ServiceError("Invalid class", status.HTTP_400_BAD_REQUEST)

    case_description = payload.case_description.strip()
    if not case_description:
        raise ServiceError("case_description is required", status.HTTP_400_BAD_REQUEST)

    dc = DisciplineCase(
        tenant_id=current_user.tenant_id,
        student_id=student.id,
        class_id=class_id,
        case_description=case_description,
        status=DisciplineCaseStatus.not_resolved.value,
        recorded_by=current_user.id,
        recorded_at=datetime.utcnow(),
    )
    db.add(dc)
    await db.commit()
    await db.refresh(dc)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.CREATE,
        f"Recorded discipline case for {student.full_name}",
        entity_type="discipline_case", entity_id=dc.id, entity_name=student.full_name, meta=meta,
    )
    return await _load(db, current_user.tenant_id, dc.id)


async def update_status(
    db: AsyncSession,
    current_user: CurrentUser,
    case_id: UUID,
    payload: DisciplineCaseStatusUpdate,
    meta: Optional[RequestMeta] = None,
) -> DisciplineCaseResponse:
    dc = (
        await db.execute(
            select(DisciplineCase).where(
                DisciplineCase.id == case_id, DisciplineCase.tenant_id == current_user.tenant_id
            )
        )
    ).scalar_one_or_none()
    if not dc:
        raise ServiceError("Discipline case not found", status.HTTP_404_NOT_FOUND)

    dc.status = payload.status.value
    dc.resolution_notes = payload.resolution_notes
    if payload.status is DisciplineCaseStatus.resolved:
        dc.resolved_at = datetime.utcnow()
        dc.resolved_by = current_user.id
    else:
        dc.resolved_at = None
        dc.resolved_by = None
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.UPDATE,
        f"Marked discipline case as {dc.status}",
        entity_type="discipline_case", entity_id=dc.id, meta=meta,
    )
    return await _load(db, current_user.tenant_id, case_id)


async def delete_case(
    db: AsyncSession,
    current_user: CurrentUser,
    case_id: UUID,
    meta: Optional[RequestMeta] = None,
) -> None:
    dc = (
        await db.execute(
            select(DisciplineCase).where(
                DisciplineCase.id == case_id, DisciplineCase.tenant_id == current_user.tenant_id
            )
        )
    ).scalar_one_or_none()
    if not dc:
        raise ServiceError("Discipline case not found", status.HTTP_404_NOT_FOUND)
    await db.delete(dc)
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        "Deleted discipline case",
        entity_type="discipline_case", entity_id=case_id, meta=meta,
    )


async def delete_all_cases(
    db: AsyncSession, current_user: CurrentUser, meta: Optional[RequestMeta] = None
) -> int:
    result = await db.execute(
        delete(DisciplineCase)
        .where(DisciplineCase.tenant_id == current_user.tenant_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    deleted = result.rowcount or 0
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        f"Deleted all discipline cases ({deleted})",
        entity_type="discipline_case", meta=meta,
    )
    return deleted
