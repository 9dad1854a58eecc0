"""Fee payment: one row per payment against a student's class fee schedule."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import backref, relationship

from school_admin.db.session import Base


class FeePayment(Base):
    """Never updated in place; corrections go through delete or reconciliation."""

    __tablename__ = "fee_payments"
    __table_args__ = (
        Index("ix_fee_payments_student_type", "student_id", "fee_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    fee_type = Column(String(20), nullable=False)  # canonical FeeType label
    amount = Column(Numeric(12, 2), nullable=False)
    paid_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    recorded_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", backref=backref("fee_payments", passive_deletes=True))
    school_class = relationship("SchoolClass")
