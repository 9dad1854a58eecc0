"""
Fees service: per-student balances, payment acceptance, reconciliation, class
rollups and yearly totals. Balances are recomputed from the payment rows on
every read; nothing is cached.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.api.v1.students.service import get_visible_student, visible_students
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import ActivityType, FeeType
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import FeePayment, SchoolClass, Student

from .balance import CENT, BalanceSheet, build_sheet, money, remaining, sum_by_student, sum_by_type
from .schemas import (
    FeeLineResponse,
    PaymentCreate,
    PaymentResponse,
    ReconcileRequest,
    ReconcileResponse,
    StudentBalanceResponse,
    YearlyTotalItem,
    YearlyTotalsResponse,
)

logger = logging.getLogger(__name__)


def _parse_fee_type(label: str) -> FeeType:
    try:
        return FeeType.parse(label)
    except ValueError:
        raise ServiceError("Invalid fee type", status.HTTP_400_BAD_REQUEST)


def _parse_amount(value) -> Decimal:
    """Exact amount in cents; anything finer than a cent is rejected, never rounded."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ServiceError("Invalid amount", status.HTTP_400_BAD_REQUEST)
    if not amount.is_finite() or amount != amount.quantize(CENT):
        raise ServiceError("Invalid amount", status.HTTP_400_BAD_REQUEST)
    return amount


def _utc_naive(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.utcnow()
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _year_bounds(year: int) -> Tuple[datetime, datetime]:
    if year < 1 or year > 9998:
        raise ServiceError("Invalid year", status.HTTP_400_BAD_REQUEST)
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def _in_year(stmt, year: Optional[int]):
    if year is None:
        return stmt
    start, end = _year_bounds(year)
    return stmt.where(FeePayment.paid_at >= start, FeePayment.paid_at < end)


def _sheet_to_response(
    student: Student, school_class: SchoolClass, sheet: BalanceSheet, year: Optional[int]
) -> StudentBalanceResponse:
    return StudentBalanceResponse(
        student_id=student.id,
        student_code=student.student_code,
        student_name=student.full_name,
        class_id=school_class.id,
        class_name=school_class.name,
        year=year,
        fees=[
            FeeLineResponse(
                fee_type=line.fee_type.value,
                scheduled=line.scheduled,
                paid=line.paid,
                balance=line.balance,
            )
            for line in sheet.lines
        ],
        total_expected=sheet.total_expected,
        total_paid=sheet.total_paid,
        total_balance=sheet.total_balance,
    )


def _payment_to_response(
    p: FeePayment, student_name: Optional[str] = None, class_name: Optional[str] = None
) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        student_id=p.student_id,
        student_name=student_name,
        class_id=p.class_id,
        class_name=class_name,
        fee_type=p.fee_type,
        amount=money(p.amount),
        paid_at=p.paid_at,
        recorded_by=p.recorded_by,
        created_at=p.created_at,
    )


def _require_class(student: Student) -> SchoolClass:
    if student.class_id is None or student.school_class is None:
        raise ServiceError("Student is not assigned to a class", status.HTTP_400_BAD_REQUEST)
    return student.school_class


async def _paid_by_type(
    db: AsyncSession,
    student_id: UUID,
    year: Optional[int] = None,
) -> Dict[FeeType, Decimal]:
    stmt = (
        select(FeePayment.fee_type, func.sum(FeePayment.amount))
        .where(FeePayment.student_id == student_id)
        .group_by(FeePayment.fee_type)
    )
    stmt = _in_year(stmt, year)
    result = await db.execute(stmt)
    return sum_by_type(result.all())


async def _paid_for_type(db: AsyncSession, student_id: UUID, fee_type: FeeType) -> Decimal:
    stmt = select(func.coalesce(func.sum(FeePayment.amount), 0)).where(
        FeePayment.student_id == student_id,
        FeePayment.fee_type == fee_type.value,
    )
    return money((await db.execute(stmt)).scalar())


# --- Balances ---
async def get_student_balance(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: UUID,
    year: Optional[int] = None,
) -> StudentBalanceResponse:
    student = await get_visible_student(db, current_user, student_id)
    school_class = _require_class(student)
    paid = await _paid_by_type(db, student.id, year)
    sheet = build_sheet(school_class.fee_schedule(), paid)
    return _sheet_to_response(student, school_class, sheet, year)


async def get_class_rollup(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: UUID,
    year: Optional[int] = None,
) -> List[StudentBalanceResponse]:
    school_class = (
        await db.execute(
            select(SchoolClass).where(
                SchoolClass.id == class_id, SchoolClass.tenant_id == current_user.tenant_id
            )
        )
    ).scalar_one_or_none()
    if not school_class:
        raise ServiceError("Class not found", status.HTTP_404_NOT_FOUND)

    students_stmt = (
        visible_students(current_user)
        .where(Student.class_id == class_id)
        .order_by(Student.full_name, Student.id)
    )
    students = list((await db.execute(students_stmt)).scalars().all())
    if not students:
        return []

    payments_stmt = _in_year(
        select(FeePayment.student_id, FeePayment.fee_type, FeePayment.amount).where(
            FeePayment.student_id.in_([s.id for s in students])
        ),
        year,
    )
    paid = sum_by_student((await db.execute(payments_stmt)).all())

    schedule = school_class.fee_schedule()
    return [
        _sheet_to_response(s, school_class, build_sheet(schedule, paid.get(s.id, {})), year)
        for s in students
    ]


# --- Payments ---
async def record_payment(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: PaymentCreate,
    meta: Optional[RequestMeta] = None,
) -> PaymentResponse:
    amount = _parse_amount(payload.amount)
    if amount <= 0:
        raise ServiceError("Invalid amount", status.HTTP_400_BAD_REQUEST)
    fee_type = _parse_fee_type(payload.fee_type)

    # Row lock serializes concurrent payments for the same student (no-op on SQLite)
    stmt = (
        visible_students(current_user)
        .where(Student.id == payload.student_id)
        .options(selectinload(Student.school_class))
        .with_for_update(of=Student)
    )
    student = (await db.execute(stmt)).scalar_one_or_none()
    if not student:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    school_class = _require_class(student)
    if payload.class_id is not None and payload.class_id != school_class.id:
        raise ServiceError("Student is not enrolled in this class", status.HTTP_400_BAD_REQUEST)

    already_paid = await _paid_for_type(db, student.id, fee_type)
    if amount > remaining(school_class.scheduled_amount(fee_type), already_paid):
        await db.rollback()
        raise ServiceError(
            "Amount exceeds remaining balance for this fee type",
            status.HTTP_400_BAD_REQUEST,
        )

    payment = FeePayment(
        tenant_id=current_user.tenant_id,
        student_id=student.id,
        class_id=school_class.id,
        fee_type=fee_type.value,
        amount=amount,
        paid_at=_utc_naive(payload.paid_at),
        recorded_by=current_user.id,
    )
    db.add(payment)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError("Failed to record payment", status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    await db.refresh(payment)
    logger.info(
        "Recorded %s payment of %s for student %s", fee_type.value, amount, student.id
    )
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.CREATE,
        f"Recorded {fee_type.value} fee payment of {amount} for {student.full_name}",
        entity_type="fee_payment", entity_id=payment.id, entity_name=student.full_name, meta=meta,
    )
    return _payment_to_response(payment, student.full_name, school_class.name)


async def reconcile_fee(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: ReconcileRequest,
    meta: Optional[RequestMeta] = None,
) -> ReconcileResponse:
    """Replace every payment of one fee type for a student by a single row of total_amount."""
    total = _parse_amount(payload.total_amount)
    if total < 0:
        raise ServiceError("Invalid amount", status.HTTP_400_BAD_REQUEST)
    fee_type = _parse_fee_type(payload.fee_type)

    student = await get_visible_student(db, current_user, payload.student_id)
    school_class = _require_class(student)
    scheduled = school_class.scheduled_amount(fee_type)
    if total > scheduled:
        raise ServiceError(
            "Amount exceeds scheduled fee for this fee type",
            status.HTTP_400_BAD_REQUEST,
        )

    payment = None
    try:
        await db.execute(
            delete(FeePayment).where(
                FeePayment.student_id == student.id,
                FeePayment.fee_type == fee_type.value,
            )
        )
        if total > 0:
            payment = FeePayment(
                tenant_id=current_user.tenant_id,
                student_id=student.id,
                class_id=school_class.id,
                fee_type=fee_type.value,
                amount=total,
                paid_at=datetime.utcnow(),
                recorded_by=current_user.id,
            )
            db.add(payment)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError("Failed to reconcile fees", status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    logger.info("Reconciled %s fees for student %s to %s", fee_type.value, student.id, total)
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.UPDATE,
        f"Reconciled {fee_type.value} fees for {student.full_name} to {total}",
        entity_type="fee_payment", entity_id=student.id, entity_name=student.full_name, meta=meta,
    )
    return ReconcileResponse(
        student_id=student.id,
        fee_type=fee_type.value,
        total_amount=total,
        scheduled=money(scheduled),
        balance=remaining(scheduled, total),
        payment_id=payment.id if payment is not None else None,
    )


async def list_student_payments(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: UUID,
) -> List[PaymentResponse]:
    student = await get_visible_student(db, current_user, student_id)
    stmt = (
        select(FeePayment, SchoolClass.name)
        .join(SchoolClass, FeePayment.class_id == SchoolClass.id)
        .where(FeePayment.student_id == student.id)
        .order_by(FeePayment.paid_at.desc(), FeePayment.created_at.desc())
    )
    result = await db.execute(stmt)
    return [_payment_to_response(p, student.full_name, class_name) for p, class_name in result.all()]


async def get_yearly_totals(
    db: AsyncSession,
    current_user: CurrentUser,
    year: Optional[int] = None,
) -> YearlyTotalsResponse:
    year = year or datetime.utcnow().year
    visible_ids = visible_students(current_user).with_only_columns(Student.id)
    stmt = (
        select(FeePayment.fee_type, func.sum(FeePayment.amount), func.count(FeePayment.id))
        .where(
            FeePayment.tenant_id == current_user.tenant_id,
            FeePayment.student_id.in_(visible_ids),
        )
        .group_by(FeePayment.fee_type)
    )
    stmt = _in_year(stmt, year)
    rows = (await db.execute(stmt)).all()

    amounts = sum_by_type((label, total) for label, total, _ in rows)
    counts: Dict[FeeType, int] = {}
    for label, _, count in rows:
        ft = FeeType.parse(label)
        counts[ft] = counts.get(ft, 0) + int(count)

    items = [
        YearlyTotalItem(
            fee_type=ft.value,
            total_amount=amounts.get(ft, money(0)),
            payment_count=counts.get(ft, 0),
        )
        for ft in FeeType
    ]
    return YearlyTotalsResponse(
        year=year,
        items=items,
        grand_total=sum((i.total_amount for i in items), money(0)),
    )


async def delete_payment(
    db: AsyncSession,
    current_user: CurrentUser,
    payment_id: UUID,
    meta: Optional[RequestMeta] = None,
) -> None:
    payment = (
        await db.execute(
            select(FeePayment).where(
                FeePayment.id == payment_id, FeePayment.tenant_id == current_user.tenant_id
            )
        )
    ).scalar_one_or_none()
    if not payment:
        raise ServiceError("Payment not found", status.HTTP_404_NOT_FOUND)
    description = f"Deleted {payment.fee_type} fee payment of {money(payment.amount)}"
    student_id = payment.student_id
    await db.delete(payment)
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE, description,
        entity_type="fee_payment", entity_id=payment_id, entity_name=str(student_id), meta=meta,
    )


async def clear_student_fees(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: UUID,
    meta: Optional[RequestMeta] = None,
) -> int:
    """Delete every payment of a student. Returns the number of rows removed."""
    student = await get_visible_student(db, current_user, student_id)
    result = await db.execute(delete(FeePayment).where(FeePayment.student_id == student.id))
    await db.commit()
    deleted = result.rowcount or 0
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.DELETE,
        f"Cleared {deleted} fee payment(s) for {student.full_name}",
        entity_type="fee_payment", entity_id=student.id, entity_name=student.full_name, meta=meta,
    )
    return deleted
