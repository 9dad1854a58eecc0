import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, Time, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.db.session import Base


class StaffMember(Base):
    """Teaching or support staff tracked by the staff attendance register."""

    __tablename__ = "staff_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    full_name = Column(String(255), nullable=False)
    employment_type = Column(String(20), nullable=False, default="FULL_TIME")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    attendance_records = relationship(
        "StaffAttendanceRecord", back_populates="staff", cascade="all, delete-orphan"
    )


class StaffAttendanceRecord(Base):
    """Staff attendance: one per staff member per day."""

    __tablename__ = "staff_attendance_records"
    __table_args__ = (
        UniqueConstraint("staff_id", "date", name="uq_staff_attendance_staff_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id = Column(UUID(as_uuid=True), ForeignKey("staff_members.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    time_in = Column(Time, nullable=True)
    time_out = Column(Time, nullable=True)
    classes_taught = Column(Text, nullable=True)
    status = Column(String(20), nullable=False)  # Present, Absent, Late, Half Day
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    staff = relationship("StaffMember", back_populates="attendance_records")
