"""Post-course analytics reads."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import course_closures


async def get_analytics_payload(conn: AsyncConnection, event_id: int) -> dict[str, Any] | None:
    """Latest stored analytics_data for a course instance, or None if not closed/analysed."""
    result = await conn.execute(
        select(course_closures.c.analytics_data)
        .where(course_closures.c.course_instance_id == event_id)
        .where(course_closures.c.analytics_data.isnot(None))
        .order_by(course_closures.c.closed_at.desc())
        .limit(1)
    )
    row = result.mappings().first()
    return row["analytics_data"] if row else None
