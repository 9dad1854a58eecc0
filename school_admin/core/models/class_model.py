"""Tenant-scoped classes with their fee schedule. Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.core.enums import FeeType
from school_admin.db.session import Base


class SchoolClass(Base):
    """Class master. Holds one scheduled amount per fee type; changed only through class update."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_class_tenant_name"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    registration_fee = Column(Numeric(12, 2), nullable=False, default=0)
    bus_fee = Column(Numeric(12, 2), nullable=False, default=0)
    internship_fee = Column(Numeric(12, 2), nullable=False, default=0)
    remedial_fee = Column(Numeric(12, 2), nullable=False, default=0)
    tuition_fee = Column(Numeric(12, 2), nullable=False, default=0)
    pta_fee = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", backref="school_classes")

    def scheduled_amount(self, fee_type: FeeType) -> Decimal:
        value = getattr(self, fee_type.column)
        return Decimal(str(value)) if value is not None else Decimal("0")

    def fee_schedule(self) -> dict:
        return {ft: self.scheduled_amount(ft) for ft in FeeType}
