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
from .schemas import ClassCreate, ClassResponse, ClassUpdate

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassResponse]:
    return await service.list_classes(db, current_user.tenant_id, include_inactive=include_inactive)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassResponse:
    try:
        return await service.get_class(db, current_user.tenant_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
) -> ClassResponse:
    try:
        return await service.create_class(db, current_user.tenant_id, payload, current_user.id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{class_id}", response_model=ClassResponse)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
) -> ClassResponse:
    try:
        return await service.update_class(db, current_user.tenant_id, class_id, payload, current_user.id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{class_id}")
async def delete_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
):
    try:
        await service.delete_class(db, current_user.tenant_id, class_id, current_user.id, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Class deleted successfully"}
