import uuid
from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from school_admin.db.session import Base


class Student(Base):
    """Enrolled student. guardian_user_id links the (non-privileged) account allowed to follow this student."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "student_code", name="uq_student_tenant_code"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id"), nullable=False, index=True)
    student_code = Column(String(50), nullable=False)
    full_name = Column(String(255), nullable=False)
    sex = Column(String(10), nullable=False, default="U")
    date_of_birth = Column(Date, nullable=True)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    guardian_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    guardian_contact = Column(String(50), nullable=True)
    registration_date = Column(Date, default=date.today, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    guardian = relationship("User", foreign_keys=[guardian_user_id])
