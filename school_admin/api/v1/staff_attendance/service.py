"""Staff attendance: members, one record per member per day, stats and the monthly report."""

from datetime import date, datetime
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.auth.models import User
from school_admin.auth.schemas import CurrentUser
from school_admin.core.config import Settings
from school_admin.core.enums import ActivityType, StaffAttendanceStatus
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import StaffAttendanceRecord, StaffMember

from .report import WorkSchedule, build_monthly_report
from .schemas import (
    MonthlyReportResponse,
    MonthStats,
    StaffMemberCreate,
    StaffMemberResponse,
    StaffMemberUpdate,
    StaffRecordCreate,
    StaffRecordResponse,
    StaffRecordUpdate,
    StaffStatsResponse,
)

VALID_STATUSES = [s.value for s in StaffAttendanceStatus]
DUPLICATE_DAY = "A record for this staff member on this date already exists"


def _month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12 or not 1 <= year <= 9998:
        raise ServiceError("Invalid month or year", status.HTTP_400_BAD_REQUEST)
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _check_status(value: str) -> str:
    if value not in VALID_STATUSES:
        raise ServiceError(
            f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}",
            status.HTTP_400_BAD_REQUEST,
        )
    return value


def _check_times(time_in, time_out) -> None:
    if time_in is not None and time_out is not None and time_out < time_in:
        raise ServiceError("time_out must not be before time_in", status.HTTP_400_BAD_REQUEST)


def _record_to_response(r: StaffAttendanceRecord, staff_name: str) -> StaffRecordResponse:
    return StaffRecordResponse(
        id=r.id,
        staff_id=r.staff_id,
        staff_name=staff_name,
        date=r.date,
        status=r.status,
        time_in=r.time_in,
        time_out=r.time_out,
        classes_taught=r.classes_taught,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


async def _get_member(db: AsyncSession, tenant_id: UUID, staff_id: UUID) -> StaffMember:
    member = (
        await db.execute(
            select(StaffMember).where(StaffMember.id == staff_id, StaffMember.tenant_id == tenant_id)
        )
    ).scalar_one_or_none()
    if not member:
        raise ServiceError("Staff member not found", status.HTTP_404_NOT_FOUND)
    return member


async def _check_user(db: AsyncSession, tenant_id: UUID, user_id: Optional[UUID]) -> None:
    if user_id is None:
        return
    user = await db.get(User, user_id)
    if not user or user.tenant_id != tenant_id:
        raise ServiceError("Invalid user", status.HTTP_400_BAD_REQUEST)


async def _get_record(
    db: AsyncSession, tenant_id: UUID, record_id: UUID
) -> Tuple[StaffAttendanceRecord, str]:
    row = (
        await db.execute(
            select(StaffAttendanceRecord, StaffMember.full_name)
            .join(StaffMember, StaffAttendanceRecord.staff_id == StaffMember.id)
            .where(
                StaffAttendanceRecord.id == record_id,
                StaffAttendanceRecord.tenant_id == tenant_id,
            )
        )
    ).first()
    if not row:
        raise ServiceError("Record not found", status.HTTP_404_NOT_FOUND)
    return row[0], row[1]


async def _day_taken(
    db: AsyncSession, staff_id: UUID, day: date, exclude_id: Optional[UUID] = None
) -> bool:
    stmt = select(StaffAttendanceRecord.id).where(
        StaffAttendanceRecord.staff_id == staff_id,
        StaffAttendanceRecord.date == day,
    )
    if exclude_id is not None:
        stmt = stmt.where(StaffAttendanceRecord.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


# --- Staff members ---
async def list_members(
    db: AsyncSession, tenant_id: UUID, include_inactive: bool = False
) -> List[StaffMemberResponse]:
    stmt = select(StaffMember).where(StaffMember.tenant_id == tenant_id)
    if not include_inactive:
        stmt = stmt.where(StaffMember.is_active.is_(True))
    stmt = stmt.order_by(StaffMember.full_name)
    result = await db.execute(stmt)
    return [StaffMemberResponse.model_validate(m) for m in result.scalars().all()]


async def create_member(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: StaffMemberCreate,
    meta: Optional[RequestMeta] = None,
) -> StaffMemberResponse:
    await _check_user(db, current_user.tenant_id, payload.user_id)
    member = StaffMember(
        tenant_id=current_user.tenant_id,
        user_id=payload.user_id,
        full_name=payload.full_name.strip(),
        employment_type=payload.employment_type.value,
        is_active=True,
    )
    db.add(member)
    await db.commit()
    await db.refresh(member)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.CREATE,
        f"Added staff member: {member.full_name}",
        entity_type="staff_member", entity_id=member.id, entity_name=member.full_name, meta=meta,
    )
    return StaffMemberResponse.model_validate(member)


async def update_member(
    db: AsyncSession,
    current_user: CurrentUser,
    staff_id: UUID,
    payload: StaffMemberUpdate,
    meta: Optional[RequestMeta] = None,
) -> StaffMemberResponse:
    member = await _get_member(db, current_user.tenant_id, staff_id)
    changes = payload.model_dump(exclude_unset=True)
    if "user_id" in changes:
        await _check_user(db, current_user.tenant_id, changes["user_id"])
        member.user_id = changes["user_id"]
    if changes.get("full_name") is not None:
        member.full_name = changes["full_name"].strip()
    if changes.get("employment_type") is not None:
        member.employment_type = changes["employment_type"].value
    if changes.get("is_active") is not None:
        member.is_active = changes["is_active"]
    await db.commit()
    await db.refresh(member)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.UPDATE,
        f"Updated staff member: {member.full_name}",
        entity_type="staff_member", entity_id=member.id, entity_name=member.full_name, meta=meta,
    )
    return StaffMemberResponse.model_validate(member)


async def delete_member(
    db: AsyncSession,
    current_user: CurrentUser,
    staff_id: UUID,
    meta: Optional[RequestMeta] = None,
) -> None:
    member = await _get_member(db, current_user.tenant_id, staff_id)
    name = member.full_name
    await db.delete(member)
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        f"Removed staff member: {name}",
        entity_type="staff_member", entity_id=staff_id, entity_name=name, meta=meta,
    )


# --- Records ---
async def create_record(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: StaffRecordCreate,
    meta: Optional[RequestMeta] = None,
) -> StaffRecordResponse:
    record_status = _check_status(payload.status)
    _check_times(payload.time_in, payload.time_out)
    member = await _get_member(db, current_user.tenant_id, payload.staff_id)
    if await _day_taken(db, member.id, payload.date):
        raise ServiceError(DUPLICATE_DAY, status.HTTP_409_CONFLICT)

    record = StaffAttendanceRecord(
        tenant_id=current_user.tenant_id,
        staff_id=member.id,
        date=payload.date,
        time_in=payload.time_in,
        time_out=payload.time_out,
        classes_taught=payload.classes_taught,
        status=record_status,
    )
    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(DUPLICATE_DAY, status.HTTP_409_CONFLICT)
    await db.refresh(record)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.CREATE,
        f"Recorded {record.status} for {member.full_name} on {record.date.isoformat()}",
        entity_type="staff_attendance", entity_id=record.id, entity_name=member.full_name, meta=meta,
    )
    return _record_to_response(record, member.full_name)


async def list_records(
    db: AsyncSession,
    tenant_id: UUID,
    page: int = 1,
    limit: int = 50,
    month: Optional[int] = None,
    year: Optional[int] = None,
    staff_id: Optional[UUID] = None,
) -> List[StaffRecordResponse]:
    stmt = (
        select(StaffAttendanceRecord, StaffMember.full_name)
        .join(StaffMember, StaffAttendanceRecord.staff_id == StaffMember.id)
        .where(StaffAttendanceRecord.tenant_id == tenant_id)
    )
    if month is not None and year is not None:
        start, end = _month_bounds(year, month)
        stmt = stmt.where(StaffAttendanceRecord.date >= start, StaffAttendanceRecord.date < end)
    if staff_id is not None:
        stmt = stmt.where(StaffAttendanceRecord.staff_id == staff_id)
    stmt = (
        stmt.order_by(StaffAttendanceRecord.date.desc(), StaffMember.full_name)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [_record_to_response(r, name) for r, name in result.all()]


async def update_record(
    db: AsyncSession,
    current_user: CurrentUser,
    record_id: UUID,
    payload: StaffRecordUpdate,
    meta: Optional[RequestMeta] = None,
) -> StaffRecordResponse:
    """Partial update; fields left out or sent as null keep their value."""
    record, staff_name = await _get_record(db, current_user.tenant_id, record_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "status" in changes:
        _check_status(changes["status"])
    _check_times(changes.get("time_in", record.time_in), changes.get("time_out", record.time_out))
    if "date" in changes and changes["date"] != record.date:
        if await _day_taken(db, record.staff_id, changes["date"], exclude_id=record.id):
            raise ServiceError(DUPLICATE_DAY, status.HTTP_409_CONFLICT)

    changed = sorted(k for k, v in changes.items() if getattr(record, k) != v)
    for k in changed:
        setattr(record, k, changes[k])
    record.updated_at = datetime.utcnow()
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(DUPLICATE_DAY, status.HTTP_409_CONFLICT)
    await db.refresh(record)
    if changed:
        await record_activity(
            db, current_user.tenant_id, current_user.id, ActivityType.UPDATE,
            f"Updated attendance of {staff_name} ({', '.join(changed)})",
            entity_type="staff_attendance", entity_id=record.id, entity_name=staff_name, meta=meta,
        )
    return _record_to_response(record, staff_name)


async def delete_record(
    db: AsyncSession,
    current_user: CurrentUser,
    record_id: UUID,
    meta: Optional[RequestMeta] = None,
) -> None:
    record, staff_name = await _get_record(db, current_user.tenant_id, record_id)
    await db.delete(record)
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        f"Deleted attendance of {staff_name}",
        entity_type="staff_attendance", entity_id=record_id, entity_name=staff_name, meta=meta,
    )


# --- Stats and report ---
async def _month_stats(db: AsyncSession, tenant_id: UUID, year: int, month: int) -> MonthStats:
    start, end = _month_bounds(year, month)

    def _count(value: str):
        return func.coalesce(func.sum(case((StaffAttendanceRecord.status == value, 1), else_=0)), 0)

    stmt = select(
        func.count(StaffAttendanceRecord.id),
        _count(StaffAttendanceStatus.PRESENT.value),
        _count(StaffAttendanceStatus.ABSENT.value),
        _count(StaffAttendanceStatus.LATE.value),
        _count(StaffAttendanceStatus.HALF_DAY.value),
    ).where(
        StaffAttendanceRecord.tenant_id == tenant_id,
        StaffAttendanceRecord.date >= start,
        StaffAttendanceRecord.date < end,
    )
    total, present, absent, late, half_day = (int(v or 0) for v in (await db.execute(stmt)).one())
    return MonthStats(
        month=f"{year:04d}-{month:02d}",
        total_records=total,
        present_count=present,
        absent_count=absent,
        late_count=late,
        half_day_count=half_day,
        attendance_rate=int(100 * present / total + 0.5) if total else 0,
    )


async def get_stats(
    db: AsyncSession, tenant_id: UUID, today: Optional[date] = None
) -> StaffStatsResponse:
    """Record counts for the current and the previous calendar month."""
    today = today or date.today()
    prev_year, prev_month = (today.year - 1, 12) if today.month == 1 else (today.year, today.month - 1)
    return StaffStatsResponse(
        current_month=await _month_stats(db, tenant_id, today.year, today.month),
        last_month=await _month_stats(db, tenant_id, prev_year, prev_month),
    )


async def monthly_report(
    db: AsyncSession,
    tenant_id: UUID,
    settings: Settings,
    year: int,
    month: int,
) -> MonthlyReportResponse:
    start, end = _month_bounds(year, month)
    in_month = (
        select(StaffAttendanceRecord.staff_id)
        .where(
            StaffAttendanceRecord.tenant_id == tenant_id,
            StaffAttendanceRecord.date >= start,
            StaffAttendanceRecord.date < end,
        )
    )
    # Inactive members still appear when they have records that month
    staff = list(
        (
            await db.execute(
                select(StaffMember)
                .where(
                    StaffMember.tenant_id == tenant_id,
                    or_(StaffMember.is_active.is_(True), StaffMember.id.in_(in_month)),
                )
                .order_by(StaffMember.full_name, StaffMember.id)
            )
        ).scalars().all()
    )
    records = (
        await db.execute(
            select(StaffAttendanceRecord).where(
                StaffAttendanceRecord.tenant_id == tenant_id,
                StaffAttendanceRecord.date >= start,
                StaffAttendanceRecord.date < end,
            )
        )
    ).scalars().all()

    report = build_monthly_report(staff, records, year, month, WorkSchedule.from_settings(settings))
    return MonthlyReportResponse.model_validate(report)
