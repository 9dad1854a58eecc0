from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, record_activity
from school_admin.auth.models import RefreshToken, User
from school_admin.auth.schemas import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    TenantInfo,
    TokenResponse,
    UserCreate,
    UserInfo,
    UserResponse,
)
from school_admin.auth.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from school_admin.core.config import Settings
from school_admin.core.enums import ActivityType, Role
from school_admin.core.exceptions import ServiceError
from school_admin.core.models import Tenant
from school_admin.core.tenant_service import generate_organization_code


async def _email_taken(db: AsyncSession, email: str) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == func.lower(email))
    result = await db.execute(stmt)
    return result.first() is not None


def _access_payload(user: User, tenant: Tenant, issued_at: datetime) -> dict:
    return {
        "sub": str(user.id),
        "user_id": str(user.id),
        "tenant_id": str(user.tenant_id),
        "organization_code": tenant.organization_code,
        "role": user.role,
        "iat": int(issued_at.timestamp()),
    }


async def register_tenant_and_admin(
    db: AsyncSession, payload: RegisterRequest
) -> RegisterResponse:
    # Login is by email alone, so emails are unique across all tenants
    if await _email_taken(db, payload.admin_email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)

    try:
        organization_code = await generate_organization_code(db)
        tenant = Tenant(
            organization_code=organization_code,
            organization_name=payload.organization_name,
            country=payload.country,
            timezone=payload.timezone,
            status="ACTIVE",
        )
        db.add(tenant)
        await db.flush()  # to populate tenant.id

        admin_user = User(
            tenant_id=tenant.id,
            full_name=payload.admin_full_name,
            email=payload.admin_email,
            mobile=payload.admin_mobile,
            password_hash=hash_password(payload.password),
            role=Role.SUPER_ADMIN.value,
            status="ACTIVE",
        )
        db.add(admin_user)

        await db.commit()
        await db.refresh(tenant)

    except IntegrityError as e:
        await db.rollback()
        raise ServiceError(
            "Conflict while creating school or user", status.HTTP_409_CONFLICT
        ) from e
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError(
            "Failed to create account", status.HTTP_500_INTERNAL_SERVER_ERROR
        ) from e

    return RegisterResponse(
        success=True,
        message="Account created successfully",
        tenant_id=tenant.id,
        organization_code=tenant.organization_code,
    )


async def login_user(
    db: AsyncSession,
    settings: Settings,
    payload: LoginRequest,
    meta: Optional[RequestMeta] = None,
) -> LoginResponse:
    # 1. Find user by email (case-insensitive)
    user_stmt = select(User).where(func.lower(User.email) == func.lower(payload.email))
    user_result = await db.execute(user_stmt)
    user: Optional[User] = user_result.scalar_one_or_none()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash
    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Check user and tenant status
    if user.status != "ACTIVE":
        raise ServiceError("Account is suspended", status.HTTP_401_UNAUTHORIZED)
    tenant = await db.get(Tenant, user.tenant_id)
    if not tenant or tenant.status != "ACTIVE":
        raise ServiceError("School is inactive", status.HTTP_403_FORBIDDEN)

    issued_at = datetime.now(timezone.utc)
    access_token = create_access_token(settings, subject=_access_payload(user, tenant, issued_at))

    refresh_token_str, refresh_expires_at = create_refresh_token(settings)
    db.add(
        RefreshToken(
            user_id=user.id,
            token=refresh_token_str,
            expires_at=refresh_expires_at,
        )
    )
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise ServiceError(
            "Failed to persist authentication state",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    await record_activity(
        db, user.tenant_id, user.id, ActivityType.LOGIN,
        "User logged in successfully", meta=meta,
    )

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token_str,
        user=UserInfo(id=user.id, name=user.full_name, email=user.email, role=user.role),
        tenant=TenantInfo(
            id=tenant.id,
            organization_code=tenant.organization_code,
            organization_name=tenant.organization_name,
        ),
        issued_at=issued_at,
    )


async def refresh_access_token(
    db: AsyncSession, settings: Settings, refresh_token: str
) -> TokenResponse:
    stmt = select(RefreshToken).where(RefreshToken.token == refresh_token)
    stored = (await db.execute(stmt)).scalar_one_or_none()
    if not stored:
        raise ServiceError("Invalid refresh token", status.HTTP_401_UNAUTHORIZED)

    expires_at = stored.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        raise ServiceError("Refresh token expired", status.HTTP_401_UNAUTHORIZED)

    user = await db.get(User, stored.user_id)
    if not user or user.status != "ACTIVE":
        raise ServiceError("Invalid refresh token", status.HTTP_401_UNAUTHORIZED)
    tenant = await db.get(Tenant, user.tenant_id)
    issued_at = datetime.now(timezone.utc)
    return TokenResponse(
        access_token=create_access_token(settings, subject=_access_payload(user, tenant, issued_at))
    )


async def logout_user(
    db: AsyncSession, current_user: CurrentUser, meta: Optional[RequestMeta] = None
) -> None:
    """Revoke every refresh token of the caller."""
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == current_user.id))
    await db.commit()
    await record_activity(
        db, current_user.tenant_id, current_user.id, ActivityType.LOGOUT,
        "User logged out successfully", meta=meta,
    )


async def create_user(
    db: AsyncSession,
    tenant_id: UUID,
    payload: UserCreate,
    created_by: Optional[UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> UserResponse:
    if await _email_taken(db, payload.email):
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)
    user = User(
        tenant_id=tenant_id,
        full_name=payload.full_name.strip(),
        email=payload.email,
        mobile=payload.mobile,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        status="ACTIVE",
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Email is already in use", status.HTTP_409_CONFLICT)
    await db.refresh(user)
    await record_activity(
        db, tenant_id, created_by, ActivityType.CREATE,
        f"Created user: {user.full_name} ({user.role})",
        entity_type="user", entity_id=user.id, entity_name=user.full_name, meta=meta,
    )
    return UserResponse.model_validate(user)


async def list_users(db: AsyncSession, tenant_id: UUID) -> List[UserResponse]:
    stmt = select(User).where(User.tenant_id == tenant_id).order_by(User.full_name)
    result = await db.execute(stmt)
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, tenant_id: UUID, user_id: UUID) -> UserResponse:
    user = (
        await db.execute(select(User).where(User.id == user_id, User.tenant_id == tenant_id))
    ).scalar_one_or_none()
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    return UserResponse.model_validate(user)
