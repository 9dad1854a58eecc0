from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from school_admin.core.enums import Role


class RegisterRequest(BaseModel):
    organization_name: str = Field(..., min_length=3)
    country: str
    timezone: str

    admin_full_name: str
    admin_email: EmailStr
    admin_mobile: Optional[str] = None
    password: str = Field(..., min_length=8)
    confirm_password: str = Field(..., min_length=8)

    @model_validator(mode="after")
    def validate_passwords(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("password and confirm_password do not match")
        return self


class RegisterResponse(BaseModel):
    success: bool
    message: str
    tenant_id: UUID
    organization_code: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: str


class TenantInfo(BaseModel):
    id: UUID
    organization_code: str
    organization_name: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserInfo
    tenant: TenantInfo
    issued_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    mobile: Optional[str] = None
    password: str = Field(..., min_length=8)
    role: Role


class UserResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    full_name: str
    email: EmailStr
    mobile: Optional[str] = None
    role: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: Optional[UUID] = None  # None for the service principal
    tenant_id: UUID
    role: str
    is_service: bool = False
