"""Query layer for database reads using SQLAlchemy Core."""

from .analytics import get_analytics_payload
from .events import get_allocations, get_event_rows
from .identity import get_identity

__all__ = [
    # Events
    "get_allocations",
    "get_event_rows",
    # Identity
    "get_identity",
    # Analytics
    "get_analytics_payload",
]
