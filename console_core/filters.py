"""
Event list filtering.

Every filter dimension is combined with AND. Set-valued dimensions (status,
country, region, enrollment type) match everything when the set is empty.
Filtering is stable: events keep the order they were fetched in (start date).
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Hashable, Iterable

from .enums import DateRangePreset, EnrollmentType, EventStatus
from .events import TrainingEvent, as_utc

NEXT_DAYS_WINDOW = timedelta(days=60)


@dataclass(frozen=True)
class DateRange:
    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: datetime) -> bool:
        """Inclusive on both ends; a missing bound is open."""
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


@dataclass(frozen=True)
class FilterState:
    search: str = ""
    statuses: frozenset[EventStatus] = field(default_factory=frozenset)
    date_range: DateRangePreset = DateRangePreset.all
    date_from: datetime | None = None  # only used with DateRangePreset.custom
    date_to: datetime | None = None
    countries: frozenset[str] = field(default_factory=frozenset)
    regions: frozenset[str] = field(default_factory=frozenset)
    enrollment_types: frozenset[EnrollmentType] = field(default_factory=frozenset)

    def cleared(self) -> "FilterState":
        return FilterState()


@dataclass(frozen=True)
class FilteredEvents:
    filtered: list[TrainingEvent]
    upcoming: list[TrainingEvent]
    past: list[TrainingEvent]


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    """Last representable instant of the day containing moment."""
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def _end_of_month(year: int, month: int, tzinfo) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day, 23, 59, 59, 999999, tzinfo=tzinfo)


def resolve_date_range(
    preset: DateRangePreset,
    now: datetime | None = None,
    custom_from: datetime | None = None,
    custom_to: datetime | None = None,
) -> DateRange:
    """
    Concrete bounds for a date filter, relative to now.

    Month/quarter/year presets cover whole calendar periods containing now;
    next-60 runs from now to now + 60 days.
    """
    now = now or datetime.now(timezone.utc)
    tz = now.tzinfo

    if preset == DateRangePreset.this_month:
        return DateRange(
            start=_start_of_day(now.replace(day=1)),
            end=_end_of_month(now.year, now.month, tz),
        )
    if preset == DateRangePreset.next_60:
        return DateRange(start=now, end=now + NEXT_DAYS_WINDOW)
    if preset == DateRangePreset.this_quarter:
        first_month = 3 * ((now.month - 1) // 3) + 1
        return DateRange(
            start=datetime(now.year, first_month, 1, tzinfo=tz),
            end=_end_of_month(now.year, first_month + 2, tz),
        )
    if preset == DateRangePreset.this_year:
        return DateRange(
            start=datetime(now.year, 1, 1, tzinfo=tz),
            end=_end_of_month(now.year, 12, tz),
        )
    if preset == DateRangePreset.custom:
        # naive bounds are taken as UTC, like stored start dates
        return DateRange(
            start=as_utc(custom_from) if custom_from else None,
            end=as_utc(custom_to) if custom_to else None,
        )
    return DateRange()


def matches_array_filter(value: Hashable | None, allowed: frozenset) -> bool:
    """Empty filter set = no restriction; otherwise value must be a member."""
    if not allowed:
        return True
    return value in allowed


def matches_search(event: TrainingEvent, search: str) -> bool:
    if not search:
        return True
    needle = search.lower()
    return (
        needle in event.title.lower()
        or needle in event.location.lower()
        or bool(event.organization_name and needle in event.organization_name.lower())
    )


def _matches(event: TrainingEvent, filters: FilterState, date_range: DateRange) -> bool:
    # country/region come from the venue's stored fields, never the location string
    return (
        matches_search(event, filters.search)
        and matches_array_filter(event.status, filters.statuses)
        and date_range.contains(event.start_date)
        and matches_array_filter(event.country, filters.countries)
        and matches_array_filter(event.region, filters.regions)
        and matches_array_filter(event.enrollment_type, filters.enrollment_types)
    )


def apply_filters(
    events: Iterable[TrainingEvent],
    filters: FilterState,
    now: datetime | None = None,
) -> list[TrainingEvent]:
    """Events matching every filter dimension, in their original order."""
    now = now or datetime.now(timezone.utc)
    date_range = resolve_date_range(
        filters.date_range, now, filters.date_from, filters.date_to
    )
    return [event for event in events if _matches(event, filters, date_range)]


def partition_events(
    events: Iterable[TrainingEvent], now: datetime | None = None
) -> tuple[list[TrainingEvent], list[TrainingEvent]]:
    """Split into (upcoming, past); an event starting exactly now is past."""
    now = now or datetime.now(timezone.utc)
    upcoming = []
    past = []
    for event in events:
        (upcoming if event.start_date > now else past).append(event)
    return upcoming, past


def filter_events(
    events: Iterable[TrainingEvent],
    filters: FilterState,
    now: datetime | None = None,
) -> FilteredEvents:
    now = now or datetime.now(timezone.utc)
    filtered = apply_filters(events, filters, now)
    upcoming, past = partition_events(filtered, now)
    return FilteredEvents(filtered=filtered, upcoming=upcoming, past=past)


def available_countries(events: Iterable[TrainingEvent]) -> list[str]:
    """Distinct stored country codes, sorted, for the country filter options."""
    return sorted({event.country for event in events if event.country})


def available_regions(events: Iterable[TrainingEvent]) -> list[str]:
    return sorted({event.region for event in events if event.region})
