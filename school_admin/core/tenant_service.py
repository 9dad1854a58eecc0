"""
Tenant (school) organization_code generation.

organization_code is a human-readable public identifier (e.g. SCH-A3K9); the UUID
id remains the only primary key and FK target.
"""
import secrets

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.exceptions import ServiceError
from school_admin.core.models import Tenant

ORGANIZATION_CODE_PREFIX = "SCH"
# Excludes ambiguous 0/O, 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_organization_code_candidate() -> str:
    """Single candidate code, no DB check. PREFIX-XXXX."""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(4))
    return f"{ORGANIZATION_CODE_PREFIX}-{suffix}"


async def generate_organization_code(db: AsyncSession, max_attempts: int = 20) -> str:
    """Generate a unique organization_code, retrying on collision."""
    for _ in range(max_attempts):
        code = generate_organization_code_candidate()
        result = await db.execute(
            select(Tenant.id).where(Tenant.organization_code == code)
        )
        if result.scalar_one_or_none() is None:
            return code
    raise ServiceError(
        "Could not generate unique organization code",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
