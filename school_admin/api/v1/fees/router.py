"""Fees router: balances, payments, reconciliation, class rollup, yearly totals."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, get_request_meta
from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import require_privileged
from school_admin.auth.schemas import CurrentUser
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from . import service
from .schemas import (
    DeletedCountResponse,
    PaymentCreate,
    PaymentResponse,
    ReconcileRequest,
    ReconcileResponse,
    StudentBalanceResponse,
    YearlyTotalsResponse,
)

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get("/student/{student_id}", response_model=StudentBalanceResponse)
async def get_student_balance(
    student_id: UUID,
    year: Optional[int] = Query(None, description="Only count payments made in this calendar year"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentBalanceResponse:
    try:
        return await service.get_student_balance(db, current_user, student_id, year=year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> PaymentResponse:
    try:
        return await service.record_payment(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/reconcile", response_model=ReconcileResponse)
async def reconcile_fee(
    payload: ReconcileRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
) -> ReconcileResponse:
    try:
        return await service.reconcile_fee(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/class/{class_id}", response_model=List[StudentBalanceResponse])
async def get_class_rollup(
    class_id: UUID,
    year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentBalanceResponse]:
    try:
        return await service.get_class_rollup(db, current_user, class_id, year=year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/total/yearly", response_model=YearlyTotalsResponse)
async def get_yearly_totals(
    year: Optional[int] = Query(None, description="Defaults to the current year"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> YearlyTotalsResponse:
    try:
        return await service.get_yearly_totals(db, current_user, year=year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/payments/student/{student_id}", response_model=List[PaymentResponse])
async def list_student_payments(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    try:
        return await service.list_student_payments(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/payments/{payment_id}")
async def delete_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        await service.delete_payment(db, current_user, payment_id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Payment deleted successfully"}


@router.delete("/student/{student_id}", response_model=DeletedCountResponse)
async def clear_student_fees(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
) -> DeletedCountResponse:
    try:
        deleted = await service.clear_student_fees(db, current_user, student_id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return DeletedCountResponse(message="Student fees cleared", deleted=deleted)
