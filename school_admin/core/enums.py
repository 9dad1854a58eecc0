from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PRINCIPAL = "PRINCIPAL"
    BURSAR = "BURSAR"
    HOD = "HOD"
    TEACHER = "TEACHER"
    DISCIPLINE_MASTER = "DISCIPLINE_MASTER"
    PARENT = "PARENT"


PRIVILEGED_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.PRINCIPAL, Role.BURSAR})


def is_privileged(role) -> bool:
    """True for admin-like roles that may read and write across the whole tenant."""
    try:
        return Role(role) in PRIVILEGED_ROLES
    except ValueError:
        return False


class FeeType(str, Enum):
    REGISTRATION = "Registration"
    BUS = "Bus"
    INTERNSHIP = "Internship"
    REMEDIAL = "Remedial"
    TUITION = "Tuition"
    PTA = "PTA"

    @classmethod
    def parse(cls, label) -> "FeeType":
        """Case-insensitive lookup by label. Raises ValueError for unknown labels."""
        normalized = str(label or "").strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"Invalid fee type: {label}")

    @property
    def column(self) -> str:
        """Name of the class schedule column holding this type's amount."""
        return f"{self.value.lower()}_fee"


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"


class StaffAttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    HALF_DAY = "Half Day"


class StudentAttendanceStatus(str, Enum):
    present = "present"
    absent = "absent"


class DisciplineCaseStatus(str, Enum):
    resolved = "resolved"
    not_resolved = "not resolved"


class ActivityType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"
    LOGOUT = "logout"
