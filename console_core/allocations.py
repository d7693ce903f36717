"""
Seat allocation aggregation.

Several organizations can hold seats on one training event; the enrolled
count shown for an event is the sum of all its allocations.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class AllocationRecord:
    event_id: int
    seats_allocated: int
    id: int | None = None  # course_allocations.id when known

    @classmethod
    def from_row(cls, row: Mapping) -> "AllocationRecord":
        return cls(
            id=row.get("id"),
            event_id=row["course_instance_id"],
            seats_allocated=row["seats_allocated"] or 0,
        )


def aggregate_allocations(allocations: Iterable[AllocationRecord]) -> dict[int, int]:
    """
    Sum seats per event.

    An allocation id seen more than once is only counted the first time.
    Records without an id are always counted.
    """
    totals: dict[int, int] = defaultdict(int)
    seen_ids: set[int] = set()
    for allocation in allocations:
        if allocation.id is not None:
            if allocation.id in seen_ids:
                continue
            seen_ids.add(allocation.id)
        totals[allocation.event_id] += allocation.seats_allocated
    return dict(totals)


def enrolled_count_for(enrollment: Mapping[int, int], event_id: int) -> int:
    """Enrolled seats for an event; events with no allocations have 0."""
    return enrollment.get(event_id, 0)


def merge_enrollment(a: Mapping[int, int], b: Mapping[int, int]) -> dict[int, int]:
    """Union two enrollment maps, adding counts on shared events."""
    merged = dict(a)
    for event_id, seats in b.items():
        merged[event_id] = merged.get(event_id, 0) + seats
    return merged
