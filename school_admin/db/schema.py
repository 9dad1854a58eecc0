"""
Versioned schema contract.

Each migration is applied once, in order, and recorded in schema_migrations.
Handlers rely on the ORM models matching SCHEMA_VERSION; nothing inspects
columns at request time.

Run once per deploy:
  python -m school_admin.db.schema
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Set, Tuple

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

# Register every mapped table on Base.metadata
import school_admin.auth.models  # noqa: F401
import school_admin.core.models  # noqa: F401
from school_admin.core.config import get_settings
from school_admin.core.logging_config import setup_logging
from school_admin.core.models import SchemaMigration
from school_admin.db.session import Base, create_engine_from_settings

logger = logging.getLogger(__name__)

Migration = Tuple[int, str, Callable[[AsyncConnection], Awaitable[None]]]


async def _create_initial_tables(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


MIGRATIONS: List[Migration] = [
    (1, "initial schema: tenants, users, classes, students, fees, attendance, discipline, activity", _create_initial_tables),
]

SCHEMA_VERSION: int = MIGRATIONS[-1][0]


async def applied_versions(conn: AsyncConnection) -> Set[int]:
    result = await conn.execute(select(SchemaMigration.version))
    return {row[0] for row in result.all()}


async def ensure_schema(db_engine: AsyncEngine) -> int:
    """Apply pending migrations and return the resulting schema version."""
    async with db_engine.begin() as conn:
        await conn.run_sync(SchemaMigration.__table__.create, checkfirst=True)
        done = await applied_versions(conn)
        for version, description, migrate in MIGRATIONS:
            if version in done:
                continue
            logger.info("Applying schema migration %s: %s", version, description)
            await migrate(conn)
            await conn.execute(
                insert(SchemaMigration).values(
                    version=version,
                    description=description,
                    applied_at=datetime.utcnow(),
                )
            )
    return SCHEMA_VERSION


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    engine = create_engine_from_settings(settings)
    try:
        version = await ensure_schema(engine)
        logger.info("Database schema is at version %s", version)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
