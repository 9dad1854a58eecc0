"""
Activity log: append-only record of who did what. Written after the primary
operation has committed; a failure here is logged and never fails the request.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.enums import ActivityType
from school_admin.core.models import ActivityLog

from .schemas import ActivityLogResponse

logger = logging.getLogger(__name__)


@dataclass
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return RequestMeta(
        ip_address=ip_address or "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
    )


async def record_activity(
    db: AsyncSession,
    tenant_id: UUID,
    user_id: Optional[UUID],
    activity_type: ActivityType,
    description: str,
    *,
    entity_type: Optional[str] = None,
    entity_id=None,
    entity_name: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> None:
    """Append one entry and commit it on its own."""
    meta = meta or RequestMeta()
    entry = ActivityLog(
        tenant_id=tenant_id,
        user_id=user_id,
        activity_type=activity_type.value,
        description=description,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_name=entity_name,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
        created_at=datetime.utcnow(),
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Failed to record activity %r for %s %s", description, entity_type, entity_id)


async def list_activity(
    db: AsyncSession,
    tenant_id: UUID,
    entity_type: Optional[str] = None,
    limit: int = 100,
) -> List[ActivityLogResponse]:
    stmt = select(ActivityLog).where(ActivityLog.tenant_id == tenant_id)
    if entity_type:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
    stmt = stmt.order_by(ActivityLog.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return [ActivityLogResponse.model_validate(a) for a in result.scalars().all()]
