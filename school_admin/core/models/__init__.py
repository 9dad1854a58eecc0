from school_admin.core.models.tenant import Tenant
from school_admin.core.models.class_model import SchoolClass
from school_admin.core.models.student import Student
from school_admin.core.models.fee_payment import FeePayment
from school_admin.core.models.activity_log import ActivityLog
from school_admin.core.models.attendance import AttendanceRecord, AttendanceSession
from school_admin.core.models.staff import StaffAttendanceRecord, StaffMember
from school_admin.core.models.discipline_case import DisciplineCase
from school_admin.core.models.schema_migration import SchemaMigration

__all__ = [
    "Tenant",
    "SchoolClass",
    "Student",
    "FeePayment",
    "ActivityLog",
    "AttendanceSession",
    "AttendanceRecord",
    "StaffMember",
    "StaffAttendanceRecord",
    "DisciplineCase",
    "SchemaMigration",
]
