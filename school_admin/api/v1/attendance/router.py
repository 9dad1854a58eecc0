from datetime import date
from typing import List
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
    AttendanceExport,
    AttendanceSummary,
    BulkMarkRequest,
    BulkMarkResponse,
    ClassOption,
    RosterStudent,
    SessionResponse,
    SessionStart,
)

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


@router.get("/classes", response_model=List[ClassOption])
async def list_classes(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassOption]:
    return await service.list_classes(db, current_user.tenant_id)


@router.get("/classes/{class_id}/students", response_model=List[RosterStudent])
async def class_roster(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[RosterStudent]:
    try:
        return await service.class_roster(db, current_user.tenant_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: SessionStart,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> SessionResponse:
    try:
        return await service.start_session(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/sessions", response_model=List[SessionResponse])
async def list_recent_sessions(
    days: int = Query(7, ge=1, le=366),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[SessionResponse]:
    return await service.list_recent_sessions(db, current_user.tenant_id, days=days)


@router.post("/sessions/{session_id}/mark-bulk", response_model=BulkMarkResponse)
async def mark_bulk(
    session_id: UUID,
    payload: BulkMarkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> BulkMarkResponse:
    try:
        return await service.mark_bulk(db, current_user, session_id, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/summary", response_model=AttendanceSummary)
async def summary(
    days: int = Query(7, ge=1, le=366),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceSummary:
    return await service.summary(db, current_user.tenant_id, days=days)


@router.get("/export", response_model=AttendanceExport)
async def export_day(
    class_id: UUID,
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> AttendanceExport:
    try:
        return await service.export_day(db, current_user.tenant_id, class_id, day)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/all")
async def delete_all(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        deleted = await service.delete_all(db, current_user, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "All attendance deleted", "deleted": deleted}
