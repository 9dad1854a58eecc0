from fastapi import Depends, HTTPException, status

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.schemas import CurrentUser
from school_admin.core.enums import Role, is_privileged
from school_admin.core.exceptions import ServiceError


def ensure_privileged(current_user: CurrentUser, message: str = "Access denied. Admin privileges required.") -> None:
    """Raise a 403 ServiceError unless the caller holds an admin-like role."""
    if not is_privileged(current_user.role):
        raise ServiceError(message, status.HTTP_403_FORBIDDEN)


async def require_privileged(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Dependency: admin-like roles only."""
    if not is_privileged(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return current_user


def ensure_can_grant_role(current_user: CurrentUser, role) -> None:
    """Only SUPER_ADMIN hands out SUPER_ADMIN or an admin-like role it does not hold itself."""
    if current_user.role == Role.SUPER_ADMIN.value:
        return
    role = Role(role)
    if role is Role.SUPER_ADMIN or (is_privileged(role) and role.value != current_user.role):
        raise ServiceError(
            f"Access denied. Cannot grant the {role.value} role.",
            status.HTTP_403_FORBIDDEN,
        )
