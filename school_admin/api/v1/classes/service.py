from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.core.enums import ActivityType
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import SchoolClass, Student

from .schemas import ClassCreate, ClassResponse, ClassUpdate


async def _get_class(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> SchoolClass:
    cl = (
        await db.execute(
            select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.tenant_id == tenant_id)
        )
    ).scalar_one_or_none()
    if not cl:
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)
    return cl


async def _name_taken(
    db: AsyncSession, tenant_id: UUID, name: str, exclude_id: Optional[UUID] = None
) -> bool:
    stmt = select(SchoolClass.id).where(
        SchoolClass.tenant_id == tenant_id,
        func.lower(SchoolClass.name) == name.strip().lower(),
    )
    if exclude_id is not None:
        stmt = stmt.where(SchoolClass.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def list_classes(
    db: AsyncSession, tenant_id: UUID, include_inactive: bool = False
) -> List[ClassResponse]:
    stmt = select(SchoolClass).where(SchoolClass.tenant_id == tenant_id)
    if not include_inactive:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.name)
    result = await db.execute(stmt)
    return [ClassResponse.model_validate(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> ClassResponse:
    return ClassResponse.model_validate(await _get_class(db, tenant_id, class_id))


async def create_class(
    db: AsyncSession,
    tenant_id: UUID,
    payload: ClassCreate,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> ClassResponse:
    name = payload.name.strip()
    if await _name_taken(db, tenant_id, name):
        raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)
    cl = SchoolClass(
        tenant_id=tenant_id,
        name=name,
        description=(payload.description or "").strip() or None,
        registration_fee=payload.registration_fee,
        bus_fee=payload.bus_fee,
        internship_fee=payload.internship_fee,
        remedial_fee=payload.remedial_fee,
        tuition_fee=payload.tuition_fee,
        pta_fee=payload.pta_fee,
        is_active=True,
    )
    db.add(cl)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(cl)
    await record_activity(
        db, tenant_id, user_id, ActivityType.CREATE, f"Created class: {cl.name}",
        entity_type="class", entity_id=cl.id, entity_name=cl.name, meta=meta,
    )
    return ClassResponse.model_validate(cl)


async def update_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    payload: ClassUpdate,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> ClassResponse:
    cl = await _get_class(db, tenant_id, class_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        changes["name"] = changes["name"].strip()
        if await _name_taken(db, tenant_id, changes["name"], exclude_id=class_id):
            raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)

    changed_fields = []
    for field, value in changes.items():
        if value is None and field != "description":
            continue
        if getattr(cl, field) != value:
            changed_fields.append(field)
            setattr(cl, field, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(cl)
    if changed_fields:
        await record_activity(
            db, tenant_id, user_id, ActivityType.UPDATE,
            f"Updated class: {cl.name} ({', '.join(sorted(changed_fields))})",
            entity_type="class", entity_id=cl.id, entity_name=cl.name, meta=meta,
        )
    return ClassResponse.model_validate(cl)


async def delete_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    user_id: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> None:
    cl = await _get_class(db, tenant_id, class_id)
    enrolled = (
        await db.execute(select(func.count(Student.id)).where(Student.class_id == class_id))
    ).scalar() or 0
    if enrolled:
        raise ServiceError(
            f"Cannot delete class with {enrolled} enrolled student(s)",
            status.HTTP_409_CONFLICT,
        )
    name = cl.name
    await db.delete(cl)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Class is still referenced by fee or attendance records", status.HTTP_409_CONFLICT)
    await record_activity(
        db, tenant_id, user_id, ActivityType.DELETE, f"Deleted class: {name}",
        entity_type="class", entity_id=class_id, entity_name=name, meta=meta,
    )
