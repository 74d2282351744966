"""
Role hierarchy and table-level access rules.

Roles from most to least privileged:
    SA  System Administrator
    AD  Administrator
    AP  Authorized Provider
    IC  Instructor Certified
    IP  Instructor Provisional
    IT  Instructor Trainee
    IN  Instructor New
"""

import enum
from typing import Dict, FrozenSet, Optional, Union


class UserRole(str, enum.Enum):
    """User roles"""
    SA = "SA"
    AD = "AD"
    AP = "AP"
    IC = "IC"
    IP = "IP"
    IT = "IT"
    IN = "IN"


ROLE_LEVELS: Dict[UserRole, int] = {
    UserRole.SA: 7,
    UserRole.AD: 6,
    UserRole.AP: 5,
    UserRole.IC: 4,
    UserRole.IP: 3,
    UserRole.IT: 2,
    UserRole.IN: 1,
}

ROLE_NAMES: Dict[UserRole, str] = {
    UserRole.SA: "System Administrator",
    UserRole.AD: "Administrator",
    UserRole.AP: "Authorized Provider",
    UserRole.IC: "Instructor Certified",
    UserRole.IP: "Instructor Provisional",
    UserRole.IT: "Instructor Trainee",
    UserRole.IN: "Instructor New",
}

# Tables only SA may write
SYSTEM_TABLES: FrozenSet[str] = frozenset({"audit_logs", "system_health_metrics"})

# Tables an Authorized Provider manages for their own sessions and rosters
PROVIDER_TABLES: FrozenSet[str] = frozenset({
    "training_sessions",
    "session_enrollments",
    "certificates",
    "certificate_requests",
    "rosters",
    "student_roster_members",
    "student_profiles",
    "course_schedules",
    "instructor_profiles",
    "student_enrollment_profiles",
    "availability_bookings",
})

# Tables instructors read for their teaching work
TEACHING_TABLES: FrozenSet[str] = frozenset({
    "training_sessions",
    "session_enrollments",
    "rosters",
    "student_roster_members",
    "courses",
    "locations",
    "user_availability",
    "availability_exceptions",
    "availability_bookings",
})

# Instructors may maintain their own scheduling rows
INSTRUCTOR_WRITABLE_TABLES: FrozenSet[str] = frozenset({
    "user_availability",
    "availability_exceptions",
    "availability_bookings",
})


def coerce_role(role: Union[UserRole, str, None]) -> Optional[UserRole]:
    if role is None:
        return None
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(str(role).upper())
    except ValueError:
        return None


def role_level(role: Union[UserRole, str, None]) -> int:
    """Numeric rank of a role, 0 for unknown roles"""
    parsed = coerce_role(role)
    return ROLE_LEVELS.get(parsed, 0) if parsed else 0


def has_minimum_role(role: Union[UserRole, str, None], minimum: Union[UserRole, str]) -> bool:
    return role_level(role) >= role_level(minimum)


def can_access_table(role: Union[UserRole, str, None], table: str, operation: str = "SELECT") -> bool:
    """
    Table-level permission check.

    SA may do anything. AD may do anything except write the system tables.
    AP works only on provider tables. Instructors read teaching tables and
    maintain their own scheduling rows. Row ownership is applied separately
    by ``traincrm.modules.auth.dependencies.scope_query``.
    """
    parsed = coerce_role(role)
    operation = operation.upper()

    if parsed is None:
        return False
    if parsed == UserRole.SA:
        return True
    if parsed == UserRole.AD:
        return not (table in SYSTEM_TABLES and operation != "SELECT")
    if parsed == UserRole.AP:
        return table in PROVIDER_TABLES or (operation == "SELECT" and table in TEACHING_TABLES)
    if parsed in (UserRole.IC, UserRole.IP):
        if operation == "SELECT":
            return table in TEACHING_TABLES
        return table in INSTRUCTOR_WRITABLE_TABLES
    # IT / IN
    if operation == "SELECT":
        return table in TEACHING_TABLES
    return table in INSTRUCTOR_WRITABLE_TABLES
