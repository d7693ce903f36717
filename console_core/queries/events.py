"""Training event and allocation reads using SQLAlchemy Core."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..allocations import AllocationRecord
from ..events import RawEventRecord
from ..scope import QueryScope
from ..tables import clients, course_allocations, course_instances, programs, venues


async def get_allocations(conn: AsyncConnection) -> list[AllocationRecord]:
    """
    Get every seat allocation.

    Not scoped: enrollment totals count all organizations' seats, and the
    event read decides which events are visible.
    """
    query = select(
        course_allocations.c.id,
        course_allocations.c.course_instance_id,
        course_allocations.c.seats_allocated,
    )
    result = await conn.execute(query)
    return [AllocationRecord.from_row(row) for row in result.mappings()]


def build_event_query(scope: QueryScope, event_id: int | None = None):
    """
    Select course instances with program, venue and host client projections.

    Outer joins keep events whose program, venue or host is missing.
    """
    query = (
        select(
            course_instances.c.id,
            course_instances.c.start_date,
            course_instances.c.end_date,
            course_instances.c.is_open_enrollment,
            course_instances.c.private_seats_allocated,
            course_instances.c.host_client_id,
            programs.c.name.label("program_name"),
            programs.c.max_students.label("program_max_students"),
            venues.c.name.label("venue_name"),
            venues.c.address.label("venue_address"),
            venues.c.region.label("venue_region"),
            venues.c.country.label("venue_country"),
            clients.c.name.label("client_name"),
        )
        .select_from(course_instances)
        .outerjoin(programs, course_instances.c.program_id == programs.c.id)
        .outerjoin(venues, course_instances.c.venue_id == venues.c.id)
        .outerjoin(clients, course_instances.c.host_client_id == clients.c.id)
        .order_by(course_instances.c.start_date.asc())
    )
    if event_id is not None:
        query = query.where(course_instances.c.id == event_id)
    return scope.apply(query)


async def get_event_rows(
    conn: AsyncConnection,
    scope: QueryScope,
    event_id: int | None = None,
) -> list[RawEventRecord]:
    """
    Get course instances visible under scope, ordered by start date.

    An empty scope returns [] without touching the database.
    """
    if scope.is_empty:
        return []
    result = await conn.execute(build_event_query(scope, event_id))
    return [RawEventRecord.from_row(row) for row in result.mappings()]
