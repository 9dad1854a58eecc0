"""
Student attendance: a session is one roll call of a class; bulk marking
upserts one record per student in a single transaction.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import ActivityType, StudentAttendanceStatus
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import AttendanceRecord, AttendanceSession, SchoolClass, Student

from .schemas import (
    AttendanceExport,
    AttendanceSummary,
    BulkMarkRequest,
    BulkMarkResponse,
    ClassOption,
    ExportRow,
    RosterStudent,
    SessionResponse,
    SessionStart,
)

_STATUSES = {s.value for s in StudentAttendanceStatus}


async def _get_class(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> SchoolClass:
    cl = await db.get(SchoolClass, class_id)
    if not cl or cl.tenant_id != tenant_id:
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)
    return cl


def _session_to_response(s: AttendanceSession, class_name: Optional[str] = None) -> SessionResponse:
    return SessionResponse(
        id=s.id,
        class_id=s.class_id,
        class_name=class_name,
        taken_by=s.taken_by,
        session_time=s.session_time,
        created_at=s.created_at,
    )


async def list_classes(db: AsyncSession, tenant_id: UUID) -> List[ClassOption]:
    stmt = select(SchoolClass.id, SchoolClass.name).where(
        SchoolClass.tenant_id == tenant_id, SchoolClass.is_active.is_(True)
    ).order_by(SchoolClass.name)
    result = await db.execute(stmt)
    return [ClassOption(id=row.id, name=row.name) for row in result.all()]


async def class_roster(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> List[RosterStudent]:
    await _get_class(db, tenant_id, class_id)
    stmt = (
        select(Student.id, Student.full_name, Student.sex)
        .where(Student.tenant_id == tenant_id, Student.class_id == class_id)
        .order_by(Student.full_name, Student.id)
    )
    result = await db.execute(stmt)
    return [RosterStudent(id=r.id, full_name=r.full_name, sex=r.sex) for r in result.all()]


async def start_session(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: SessionStart,
    meta: Optional[RequestMeta] = None,
) -> SessionResponse:
    cl = await _get_class(db, current_user.tenant_id, payload.class_id)
    session_time = payload.session_time or datetime.utcnow()
    if session_time.tzinfo is not None:
        session_time = session_time.astimezone(timezone.utc).replace(tzinfo=None)
    session = AttendanceSession(
        tenant_id=current_user.tenant_id,
        class_id=cl.id,
        taken_by=current_user.id,
        session_time=session_time,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.CREATE,
        f"Started attendance session for {cl.name}",
        entity_type="attendance_session", entity_id=session.id, entity_name=cl.name, meta=meta,
    )
    return _session_to_response(session, cl.name)


async def list_recent_sessions(db: AsyncSession, tenant_id: UUID, days: int = 7) -> List[SessionResponse]:
    since = datetime.utcnow() - timedelta(days=days)
    stmt = (
        select(AttendanceSession, SchoolClass.name)
        .join(SchoolClass, AttendanceSession.class_id == SchoolClass.id)
        .where(AttendanceSession.tenant_id == tenant_id, AttendanceSession.session_time >= since)
        .order_by(AttendanceSession.session_time.desc())
    )
    result = await db.execute(stmt)
    return [_session_to_response(s, class_name) for s, class_name in result.all()]


async def mark_bulk(
    db: AsyncSession,
    current_user: CurrentUser,
    session_id: UUID,
    payload: BulkMarkRequest,
    meta: Optional[RequestMeta] = None,
) -> BulkMarkResponse:
    """All-or-nothing upsert of the given records into one session."""
    if not payload.records:
        raise ServiceError("records must be a non-empty array", status.HTTP_400_BAD_REQUEST)

    session = (
        await db.execute(
            select(AttendanceSession).where(
                AttendanceSession.id == session_id,
                AttendanceSession.tenant_id == current_user.tenant_id,
            )
        )
    ).scalar_one_or_none()
    if not session:
        raise ServiceError("Session not found", status.HTTP_404_NOT_FOUND)

    wanted: Dict[UUID, str] = {}
    for r in payload.records:
        normalized = (r.status or "").strip().lower()
        if normalized not in _STATUSES:
            raise ServiceError("Invalid records data", status.HTTP_400_BAD_REQUEST)
        wanted[r.student_id] = normalized  # last mark for a student wins

    enrolled = set(
        (
            await db.execute(
                select(Student.id).where(
                    Student.tenant_id == current_user.tenant_id,
                    Student.class_id == session.class_id,
                    Student.id.in_(list(wanted)),
                )
            )
        ).scalars().all()
    )
    if enrolled != set(wanted):
        raise ServiceError("Invalid records data", status.HTTP_400_BAD_REQUEST)

    existing = {
        rec.student_id: rec
        for rec in (
            await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.session_id == session.id,
                    AttendanceRecord.student_id.in_(list(wanted)),
                )
            )
        ).scalars().all()
    }

    now = datetime.utcnow()
    created = updated = 0
    try:
        for student_id, status_value in wanted.items():
            rec = existing.get(student_id)
            if rec is None:
                db.add(
                    AttendanceRecord(
                        session_id=session.id,
                        student_id=student_id,
                        status=status_value,
                        marked_at=now,
                        created_at=now,
                    )
                )
                created += 1
            else:
                rec.status = status_value
                rec.marked_at = now
                updated += 1
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError("Failed to save attendance", status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.UPDATE,
        f"Marked attendance for {len(wanted)} student(s)",
        entity_type="attendance_session", entity_id=session.id, meta=meta,
    )
    return BulkMarkResponse(message="Attendance saved", created=created, updated=updated)


async def summary(db: AsyncSession, tenant_id: UUID, days: int = 7) -> AttendanceSummary:
    since = datetime.utcnow() - timedelta(days=days)
    stmt = (
        select(
            func.coalesce(func.sum(case((AttendanceRecord.status == "present", 1), else_=0)), 0),
            func.coalesce(func.sum(case((AttendanceRecord.status == "absent", 1), else_=0)), 0),
        )
        .select_from(AttendanceSession)
        .join(AttendanceRecord, AttendanceRecord.session_id == AttendanceSession.id)
        .where(AttendanceSession.tenant_id == tenant_id, AttendanceSession.session_time >= since)
    )
    present, absent = (await db.execute(stmt)).one()
    return AttendanceSummary(days=days, present=int(present or 0), absent=int(absent or 0))


async def export_day(
    db: AsyncSession, tenant_id: UUID, class_id: UUID, day: date
) -> AttendanceExport:
    """Per-student P/A grid across every session of a class on one day."""
    cl = await _get_class(db, tenant_id, class_id)
    start = datetime(day.year, day.month, day.day)
    sessions = list(
        (
            await db.execute(
                select(AttendanceSession)
                .where(
                    AttendanceSession.tenant_id == tenant_id,
                    AttendanceSession.class_id == class_id,
                    AttendanceSession.session_time >= start,
                    AttendanceSession.session_time < start + timedelta(days=1),
                )
                .order_by(AttendanceSession.session_time)
            )
        ).scalars().all()
    )
    if not sessions:
        return AttendanceExport(date=day, class_id=cl.id, class_name=cl.name, sessions=[], rows=[])

    roster = await class_roster(db, tenant_id, class_id)
    marks = {
        (r.session_id, r.student_id): r.status
        for r in (
            await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.session_id.in_([s.id for s in sessions])
                )
            )
        ).scalars().all()
    }

    rows = []
    for student in roster:
        statuses = []
        for s in sessions:
            mark = marks.get((s.id, student.id))
            statuses.append("" if mark is None else ("P" if mark == "present" else "A"))
        rows.append(
            ExportRow(
                id=student.id,
                full_name=student.full_name,
                sex=student.sex,
                statuses=statuses,
                total_present=statuses.count("P"),
                total_absent=statuses.count("A"),
            )
        )
    return AttendanceExport(
        date=day,
        class_id=cl.id,
        class_name=cl.name,
        sessions=[s.session_time.strftime("%H:%M") for s in sessions],
        rows=rows,
    )


async def delete_all(
    db: AsyncSession, current_user: CurrentUser, meta: Optional[RequestMeta] = None
) -> int:
    """Drop every session and record of the tenant. Returns the session count."""
    session_ids = select(AttendanceSession.id).where(AttendanceSession.tenant_id == current_user.tenant_id)
    try:
        await db.execute(
            delete(AttendanceRecord)
            .where(AttendanceRecord.session_id.in_(session_ids))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(
            delete(AttendanceSession)
            .where(AttendanceSession.tenant_id == current_user.tenant_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError("Failed to delete attendance", status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    deleted = result.rowcount or 0
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        f"Deleted all attendance ({deleted} session(s))",
        entity_type="attendance_session", meta=meta,
    )
    return deleted
