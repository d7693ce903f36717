"""
Training event transformation.

Joins a course_instances row (already joined by the query with its program,
venue and hosting client) with the aggregated enrollment map into the
TrainingEvent record the console lists and filters.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping

from .allocations import enrolled_count_for
from .enums import EnrollmentType, EventStatus

logger = logging.getLogger(__name__)

UNNAMED_COURSE = "Unnamed Course"
UNKNOWN_LOCATION = "Unknown Location"
DEFAULT_EVENT_LENGTH = timedelta(days=1)


def as_utc(value: datetime | str) -> datetime:
    """Accept a datetime or ISO string; naive values are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ProgramRef:
    name: str | None
    max_students: int | None = None


@dataclass(frozen=True)
class VenueRef:
    name: str | None
    address: str | None = None
    region: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class RawEventRecord:
    """One course_instances row with its joined projections."""

    id: int
    start_date: datetime
    end_date: datetime | None = None
    is_open_enrollment: bool = False
    private_seats_allocated: int | None = None
    host_client_id: str | None = None
    program: ProgramRef | None = None
    venue: VenueRef | None = None
    host_client_name: str | None = None
    cancelled: bool | None = None

    @classmethod
    def from_row(cls, row: Mapping) -> "RawEventRecord":
        """Build from a row of queries.events.get_event_rows()."""
        program = None
        if row.get("program_name") is not None or row.get("program_max_students") is not None:
            program = ProgramRef(
                name=row.get("program_name"),
                max_students=row.get("program_max_students"),
            )
        venue = None
        if row.get("venue_name") is not None:
            venue = VenueRef(
                name=row.get("venue_name"),
                address=row.get("venue_address"),
                region=row.get("venue_region"),
                country=row.get("venue_country"),
            )
        end_date = row.get("end_date")
        return cls(
            id=row["id"],
            start_date=as_utc(row["start_date"]),
            end_date=as_utc(end_date) if end_date is not None else None,
            is_open_enrollment=bool(row.get("is_open_enrollment")),
            private_seats_allocated=row.get("private_seats_allocated"),
            host_client_id=row.get("host_client_id"),
            program=program,
            venue=venue,
            host_client_name=row.get("client_name"),
            cancelled=row.get("cancelled"),
        )


@dataclass(frozen=True)
class TrainingEvent:
    id: str
    title: str
    location: str
    start_date: datetime
    end_date: datetime
    status: EventStatus
    capacity: int
    enrolled_count: int
    organization_name: str | None
    is_open_enrollment: bool
    region: str | None
    country: str | None
    # Raw upstream cancellation flag, shown next to the derived status
    source_cancelled: bool | None = None

    @property
    def enrollment_type(self) -> EnrollmentType:
        return EnrollmentType.open if self.is_open_enrollment else EnrollmentType.private

    @property
    def available_seats(self) -> int:
        return max(self.capacity - self.enrolled_count, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "location": self.location,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "status": self.status.value,
            "capacity": self.capacity,
            "enrolledCount": self.enrolled_count,
            "availableSeats": self.available_seats,
            "clientName": self.organization_name,
            "isOpenEnrollment": self.is_open_enrollment,
            "enrollmentType": self.enrollment_type.value,
            "region": self.region,
            "country": self.country,
            "sourceCancelled": self.source_cancelled,
        }


def resolve_capacity(raw: RawEventRecord) -> int:
    """Private seat allocation wins over the program's class size; else 0."""
    if raw.private_seats_allocated is not None:
        return raw.private_seats_allocated
    if raw.program is not None and raw.program.max_students is not None:
        return raw.program.max_students
    return 0


def resolve_end_date(raw: RawEventRecord) -> datetime:
    if raw.end_date is None:
        return raw.start_date + DEFAULT_EVENT_LENGTH
    if raw.end_date < raw.start_date:
        logger.warning(
            "Course instance %s ends before it starts; using default length", raw.id
        )
        return raw.start_date + DEFAULT_EVENT_LENGTH
    return raw.end_date


def format_location(venue: VenueRef | None) -> str:
    """
    Display string for where an event happens.

    Appends the last comma-separated part of the venue address (usually the
    country or state) to the venue name. For display only: filtering uses
    the venue's stored country and region.
    """
    name = (venue.name if venue else None) or UNKNOWN_LOCATION
    if venue is None or not venue.address:
        return name
    parts = [part.strip() for part in venue.address.split(",")]
    if len(parts) > 1:
        return f"{name}, {parts[-1]}"
    return name


def derive_status(start_date: datetime, now: datetime) -> EventStatus:
    # Upstream cancellation is not folded in here; see TrainingEvent.source_cancelled
    return EventStatus.scheduled if start_date > now else EventStatus.completed


def transform_event(
    raw: RawEventRecord,
    enrollment: Mapping[int, int],
    now: datetime | None = None,
) -> TrainingEvent:
    now = now or datetime.now(timezone.utc)
    venue = raw.venue
    return TrainingEvent(
        id=str(raw.id),
        title=(raw.program.name if raw.program else None) or UNNAMED_COURSE,
        location=format_location(venue),
        start_date=raw.start_date,
        end_date=resolve_end_date(raw),
        status=derive_status(raw.start_date, now),
        capacity=resolve_capacity(raw),
        enrolled_count=enrolled_count_for(enrollment, raw.id),
        organization_name=raw.host_client_name or None,
        is_open_enrollment=raw.is_open_enrollment,
        region=(venue.region if venue else None) or None,
        country=(venue.country if venue else None) or None,
        source_cancelled=raw.cancelled,
    )


def transform_events(
    rows: Iterable[RawEventRecord],
    enrollment: Mapping[int, int],
    now: datetime | None = None,
) -> list[TrainingEvent]:
    """Transform a batch with one shared 'now' so statuses are consistent."""
    now = now or datetime.now(timezone.utc)
    return [transform_event(raw, enrollment, now) for raw in rows]


def with_current_status(events: Iterable[TrainingEvent], now: datetime) -> list[TrainingEvent]:
    """
    Re-derive status against now.

    Cached lists keep the status from fetch time; the view uses this so status
    and the upcoming/past split always agree.
    """
    result = []
    for event in events:
        status = derive_status(event.start_date, now)
        result.append(event if status == event.status else replace(event, status=status))
    return result
