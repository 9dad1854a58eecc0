"""Staff attendance router. Every route also accepts the configured service token."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, get_request_meta
from school_admin.auth.dependencies import get_app_settings, get_current_user_or_service
from school_admin.auth.rbac import ensure_privileged
from school_admin.auth.schemas import CurrentUser
from school_admin.core.config import Settings
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from . import service
from .schemas import (
    MonthlyReportResponse,
    StaffMemberCreate,
    StaffMemberResponse,
    StaffMemberUpdate,
    StaffRecordCreate,
    StaffRecordResponse,
    StaffRecordUpdate,
    StaffStatsResponse,
)

router = APIRouter(prefix="/api/v1/staff-attendance", tags=["staff-attendance"])


async def require_staff_admin(
    current_user: CurrentUser = Depends(get_current_user_or_service),
) -> CurrentUser:
    try:
        ensure_privileged(current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return current_user


# --- Staff members ---
@router.get("/members", response_model=List[StaffMemberResponse])
async def list_members(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_service),
) -> List[StaffMemberResponse]:
    return await service.list_members(db, current_user.tenant_id, include_inactive=include_inactive)


@router.post("/members", response_model=StaffMemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    payload: StaffMemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
) -> StaffMemberResponse:
    try:
        return await service.create_member(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/members/{staff_id}", response_model=StaffMemberResponse)
async def update_member(
    staff_id: UUID,
    payload: StaffMemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
) -> StaffMemberResponse:
    try:
        return await service.update_member(db, current_user, staff_id, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/members/{staff_id}")
async def delete_member(
    staff_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        await service.delete_member(db, current_user, staff_id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Staff member deleted successfully"}


# --- Records ---
@router.post("/records", response_model=StaffRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    payload: StaffRecordCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
) -> StaffRecordResponse:
    try:
        return await service.create_record(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/records", response_model=List[StaffRecordResponse])
async def list_records(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1),
    staff_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_service),
) -> List[StaffRecordResponse]:
    try:
        return await service.list_records(
            db, current_user.tenant_id, page=page, limit=limit, month=month, year=year, staff_id=staff_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/records/{record_id}", response_model=StaffRecordResponse)
async def update_record(
    record_id: UUID,
    payload: StaffRecordUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
) -> StaffRecordResponse:
    try:
        return await service.update_record(db, current_user, record_id, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/records/{record_id}")
async def delete_record(
    record_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        await service.delete_record(db, current_user, record_id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Record deleted successfully"}


# --- Stats and report ---
@router.get("/stats", response_model=StaffStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user_or_service),
) -> StaffStatsResponse:
    return await service.get_stats(db, current_user.tenant_id)


@router.get("/monthly-report", response_model=MonthlyReportResponse)
async def monthly_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1, le=9998),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    current_user: CurrentUser = Depends(get_current_user_or_service),
) -> MonthlyReportResponse:
    try:
        return await service.monthly_report(db, current_user.tenant_id, settings, year, month)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
