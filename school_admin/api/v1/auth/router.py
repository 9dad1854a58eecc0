from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.activity.service import RequestMeta, get_request_meta
from school_admin.auth.dependencies import get_app_settings, get_current_user
from school_admin.auth.rbac import ensure_can_grant_role, require_privileged
from school_admin.auth.schemas import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from school_admin.auth import services
from school_admin.core.config import Settings
from school_admin.core.exceptions import ServiceError
from school_admin.db.session import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _raise_http(e: ServiceError) -> None:
    if e.status_code == http_status.HTTP_500_INTERNAL_SERVER_ERROR:
        raise HTTPException(status_code=e.status_code, detail="Internal server error")
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> RegisterResponse:
    try:
        return await services.register_tenant_and_admin(db, payload)
    except ServiceError as e:
        _raise_http(e)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    meta: RequestMeta = Depends(get_request_meta),
) -> LoginResponse:
    try:
        return await services.login_user(db, settings, payload, meta)
    except ServiceError as e:
        _raise_http(e)


@router.post("/login-oauth", response_model=TokenResponse)
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    meta: RequestMeta = Depends(get_request_meta),
) -> TokenResponse:
    payload = LoginRequest(
        email=form_data.username.strip(),
        password=form_data.password,
    )
    try:
        result = await services.login_user(db, settings, payload, meta)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return TokenResponse(access_token=result.access_token)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    try:
        return await services.refresh_access_token(db, settings, payload.refresh_token)
    except ServiceError as e:
        _raise_http(e)


@router.post("/logout")
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    await services.logout_user(db, current_user, meta)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> UserResponse:
    try:
        return await services.get_user(db, current_user.tenant_id, current_user.id)
    except ServiceError as e:
        _raise_http(e)


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
    meta: RequestMeta = Depends(get_request_meta),
) -> UserResponse:
    try:
        ensure_can_grant_role(current_user, payload.role)
        return await services.create_user(
            db, current_user.tenant_id, payload, created_by=current_user.id, meta=meta
        )
    except ServiceError as e:
        _raise_http(e)


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_privileged),
) -> List[UserResponse]:
    return await services.list_users(db, current_user.tenant_id)
