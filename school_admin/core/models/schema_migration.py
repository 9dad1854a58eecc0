from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from school_admin.db.session import Base


class SchemaMigration(Base):
    """Applied schema versions; the database is at max(version)."""

    __tablename__ = "schema_migrations"

    version = Column(Integer, primary_key=True, autoincrement=False)
    description = Column(String(255), nullable=False)
    applied_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
