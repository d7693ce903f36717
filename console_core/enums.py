"""Enum definitions for roles, event states and filter dimensions."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class AppRole(str, enum.Enum):
    """profiles.role - provider-side roles."""

    superadmin = "superadmin"
    admin = "admin"
    staff = "staff"
    student = "student"


class ClientRole(str, enum.Enum):
    """client_users.role - roles inside a client organization."""

    client_admin = "client_admin"
    manager = "manager"
    supervisor = "supervisor"


class Role(str, enum.Enum):
    """Effective console role of an actor."""

    superadmin = "superadmin"
    admin = "admin"
    staff = "staff"
    client_admin = "client_admin"
    manager = "manager"
    supervisor = "supervisor"

    @property
    def is_internal(self) -> bool:
        return self in INTERNAL_ROLES


INTERNAL_ROLES = frozenset({Role.superadmin, Role.admin, Role.staff})


class EventStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class EnrollmentType(str, enum.Enum):
    open = "open"
    private = "private"


class DateRangePreset(str, enum.Enum):
    all = "all"
    this_month = "this-month"
    next_60 = "next-60"
    this_quarter = "this-quarter"
    this_year = "this-year"
    custom = "custom"


class StressCategory(str, enum.Enum):
    enhanced = "enhanced"
    resilient = "resilient"
    affected = "affected"


# =====================================================
# SQLAlchemy Enum Types
# These reference existing PostgreSQL types (create_type=False)
# =====================================================

app_role_enum = SQLEnum(AppRole, name="app_role", create_type=False, native_enum=True)
client_role_enum = SQLEnum(
    ClientRole, name="client_role", create_type=False, native_enum=True
)
