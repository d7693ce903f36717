"""SQLAlchemy Core table definitions for the tables the console reads.

The schema is owned by the Supabase project (migrations live there); these
definitions mirror the columns used here and are never used to create tables.
"""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from .enums import app_role_enum, client_role_enum

# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. PROFILES (one per auth user)
# =====================================================
profiles = Table(
    "profiles",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("email", Text),
    Column("first_name", Text),
    Column("last_name", Text),
    Column("organization_name", Text),
    Column("role", app_role_enum, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 2. CLIENTS (customer organizations)
# =====================================================
clients = Table(
    "clients",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("name", Text, nullable=False),
    Column("country", Text),
    Column("status", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
)


# =====================================================
# 3. CLIENT USERS (direct organization membership)
# =====================================================
client_users = Table(
    "client_users",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("client_id", UUID(as_uuid=False), ForeignKey("clients.id"), nullable=False),
    Column("user_id", UUID(as_uuid=False), nullable=False),
    Column("role", client_role_enum),
    Column("status", Text, nullable=False),
    Index("idx_client_users_user_id", "user_id"),
)


# =====================================================
# 4. GROUPS / TEAMS / USER_TEAMS (membership through teams)
# =====================================================
groups = Table(
    "groups",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("client_id", UUID(as_uuid=False), ForeignKey("clients.id"), nullable=False),
    Column("name", Text, nullable=False),
    Column("is_default", Boolean),
)

teams = Table(
    "teams",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("group_id", UUID(as_uuid=False), ForeignKey("groups.id"), nullable=False),
    Column("name", Text, nullable=False),
)

user_teams = Table(
    "user_teams",
    metadata,
    Column("id", UUID(as_uuid=False), primary_key=True),
    Column("team_id", UUID(as_uuid=False), ForeignKey("teams.id"), nullable=False),
    Column("user_id", UUID(as_uuid=False), nullable=False),
    Index("idx_user_teams_user_id", "user_id"),
)


# =====================================================
# 5. PROGRAMS / VENUES
# =====================================================
programs = Table(
    "programs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text, nullable=False),
    Column("sku", Text, nullable=False),
    Column("max_students", Integer),
    Column("min_students", Integer),
    Column("duration_days", Integer),
)

venues = Table(
    "venues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", Text, nullable=False),
    Column("short_name", Text),
    Column("address", Text),
    Column("region", Text),
    Column("country", Text),  # ISO country code
)


# =====================================================
# 6. COURSE INSTANCES (training events)
# =====================================================
course_instances = Table(
    "course_instances",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("program_id", Integer, ForeignKey("programs.id"), nullable=False),
    Column("venue_id", Integer, ForeignKey("venues.id"), nullable=False),
    Column("host_client_id", UUID(as_uuid=False), ForeignKey("clients.id")),
    Column("start_date", TIMESTAMP(timezone=True), nullable=False),
    Column("end_date", TIMESTAMP(timezone=True)),
    Column("is_open_enrollment", Boolean, nullable=False),
    Column("private_seats_allocated", Integer),
    Column("visibility_type", Integer, nullable=False),
    Index("idx_course_instances_host_client_id", "host_client_id"),
    Index("idx_course_instances_start_date", "start_date"),
)


# =====================================================
# 7. COURSE ALLOCATIONS (seats reserved per organization)
# =====================================================
course_allocations = Table(
    "course_allocations",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "course_instance_id",
        Integer,
        ForeignKey("course_instances.id"),
        nullable=False,
    ),
    Column("client_id", UUID(as_uuid=False), ForeignKey("clients.id"), nullable=False),
    Column("seats_allocated", Integer, nullable=False),
    Index("idx_course_allocations_course_instance_id", "course_instance_id"),
)


# =====================================================
# 8. COURSE CLOSURES (post-course analytics)
# =====================================================
course_closures = Table(
    "course_closures",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "course_instance_id",
        Integer,
        ForeignKey("course_instances.id"),
        nullable=False,
    ),
    Column("status", Text, nullable=False),
    Column("country", Text, nullable=False),
    Column("units", Text, nullable=False),
    Column("closure_data", JSONB),
    Column("analytics_data", JSONB),
    Column("closed_at", TIMESTAMP(timezone=True), nullable=False),
)
