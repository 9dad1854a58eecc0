from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import require_privileged
from school_admin.auth.schemas import CurrentUser
from school_admin.db.session import get_db

from . import service
from .schemas import ActivityLogResponse

router = APIRouter(prefix="/api/v1/activity", tags=["activity"])


@router.get("", response_model=List[ActivityLogResponse])
async def list_activity(
    entity_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
) -> List[ActivityLogResponse]:
    return await service.list_activity(db, current_user.tenant_id, entity_type=entity_type, limit=limit)
