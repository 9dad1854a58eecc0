import secrets
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import User
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.security import decode_access_token
from school_admin.core.config import Settings
from school_admin.core.enums import Role
from school_admin.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth", auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _user_from_token(token: Optional[str], db: AsyncSession, settings: Settings) -> CurrentUser:
    if not token:
        raise _unauthorized("No token provided")

    try:
        payload = decode_access_token(settings, token)
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized("Could not validate credentials")

    user_id_str = payload.get("user_id") or payload.get("sub")
    tenant_id_str = payload.get("tenant_id")
    if not user_id_str or not tenant_id_str:
        raise _unauthorized("Could not validate credentials")

    try:
        user_id = UUID(user_id_str)
        tenant_id = UUID(tenant_id_str)
    except ValueError:
        raise _unauthorized("Could not validate credentials")

    # Role is read from the row, not the token, so demotions apply immediately
    stmt = select(User).where(User.id == user_id, User.tenant_id == tenant_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user or user.status != "ACTIVE":
        raise _unauthorized("Could not validate credentials")

    return CurrentUser(id=user.id, tenant_id=user.tenant_id, role=user.role)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    """Resolve the authenticated user from the bearer access token."""
    return await _user_from_token(token, db, settings)


async def get_current_user_or_service(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> CurrentUser:
    """Like get_current_user, but also accepts the configured service token."""
    if (
        token
        and settings.service_token
        and settings.service_tenant_id
        and secrets.compare_digest(token, settings.service_token)
    ):
        return CurrentUser(
            id=None,
            tenant_id=settings.service_tenant_id,
            role=Role.ADMIN.value,
            is_service=True,
        )
    return await _user_from_token(token, db, settings)
