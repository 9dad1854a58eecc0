from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, get_request_meta
from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import require_privileged
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import DisciplineCaseStatus
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

from . import service
from .schemas import DisciplineCaseCreate, DisciplineCaseResponse, DisciplineCaseStatusUpdate

router = APIRouter(prefix="/api/v1/discipline-cases", tags=["discipline-cases"])


@router.get("", response_model=List[DisciplineCaseResponse])
async def list_cases(
    case_status: Optional[DisciplineCaseStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[DisciplineCaseResponse]:
    return await service.list_cases(db, current_user.tenant_id, case_status=case_status)


@router.post("", response_model=DisciplineCaseResponse, status_code=status.HTTP_201_CREATED)
async def create_case(
    payload: DisciplineCaseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> DisciplineCaseResponse:
    try:
        return await service.create_case(db, current_user, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{case_id}/status", response_model=DisciplineCaseResponse)
async def update_status(
    case_id: UUID,
    payload: DisciplineCaseStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> DisciplineCaseResponse:
    try:
        return await service.update_status(db, current_user, case_id, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{case_id}")
async def delete_case(
    case_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        await service.delete_case(db, current_user, case_id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Discipline case deleted successfully"}


@router.delete("")
async def delete_all_cases(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
):
    deleted = await service.delete_all_cases(db, current_user, meta)
    return {"message": "All discipline cases deleted successfully", "deleted": deleted}
