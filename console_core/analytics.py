"""
Post-course analytics classification.

The analytics payload for a closed course carries one record per student
with a composite overall_score and component scores. Two derivations feed the
reporting views:

- Performance tiers: cohort split into three fixed score bands.
- Stress response: each student's high-stress score compared with their
  low-stress score.
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, ValidationError

from .enums import StressCategory

# Score gap (points) at which a student counts as stress enhanced/affected.
# A gap of exactly this size already qualifies.
STRESS_RESPONSE_THRESHOLD = 5.0

NEEDS_TRAINING_BELOW = 70.0
EXCEPTIONAL_FROM = 85.0


class InsufficientDataError(Exception):
    """Raised when a classification needs at least one student and got none."""

    pass


class AnalyticsPayloadError(Exception):
    """Raised when a stored analytics payload does not have the expected shape."""

    pass


class StudentPerformanceRecord(BaseModel):
    """One student's scores from the analytics payload."""

    model_config = ConfigDict(extra="allow", allow_inf_nan=False, frozen=True)

    name: str
    overall_score: float
    slalom_control: float | None = None
    slalom_attempts: int | None = None
    evasion_control: float | None = None
    evasion_attempts: int | None = None
    low_stress_score: float
    high_stress_score: float
    final_result: float | None = None
    penalties: float | None = None
    reverse_time: float | None = None


class AnalyticsReport(BaseModel):
    """
    Pre-computed report for a course instance.

    Only student_performance_data is interpreted here; metadata and the
    narrative sections are passed through as-is for the display layer.
    """

    model_config = ConfigDict(extra="allow")

    report_id: str | None = None
    metadata: dict[str, Any] = {}
    student_performance_data: list[StudentPerformanceRecord]
    processing_status: str | None = None

    @classmethod
    def parse_payload(cls, payload: Any) -> "AnalyticsReport":
        """
        Validate a raw analytics_data JSON value.

        Raises:
            AnalyticsPayloadError: If the payload is missing or malformed.
        """
        if not isinstance(payload, dict):
            raise AnalyticsPayloadError("Analytics payload must be a JSON object")
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise AnalyticsPayloadError(f"Invalid analytics payload: {e}") from e


@dataclass(frozen=True)
class PerformanceTier:
    name: str
    count: int
    percentage: int
    color: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "percentage": self.percentage,
            "color": self.color,
        }


@dataclass(frozen=True)
class _TierBand:
    name: str
    color: str
    low: float | None  # inclusive
    high: float | None  # exclusive

    def contains(self, score: float) -> bool:
        if self.low is not None and score < self.low:
            return False
        if self.high is not None and score >= self.high:
            return False
        return True


# Half-open, adjacent bands covering the whole real line
TIER_BANDS = (
    _TierBand("Needs Training", "#EF4444", None, NEEDS_TRAINING_BELOW),
    _TierBand("Good Performance", "#F59E0B", NEEDS_TRAINING_BELOW, EXCEPTIONAL_FROM),
    _TierBand("Exceptional", "#10B981", EXCEPTIONAL_FROM, None),
)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def tier_for_score(score: float) -> str:
    if not math.isfinite(score):
        raise ValueError(f"Score {score!r} is not a finite number")
    return next(band.name for band in TIER_BANDS if band.contains(score))


def classify_performance_tiers(
    students: Iterable[StudentPerformanceRecord],
) -> list[PerformanceTier]:
    """
    Count students per tier.

    Raises:
        InsufficientDataError: If there are no students.
    """
    students = list(students)
    total = len(students)
    if total == 0:
        raise InsufficientDataError("Cannot compute performance tiers for an empty cohort")

    counts = {band.name: 0 for band in TIER_BANDS}
    for student in students:
        counts[tier_for_score(student.overall_score)] += 1

    return [
        PerformanceTier(
            name=band.name,
            count=counts[band.name],
            percentage=_round_half_up(counts[band.name] / total * 100),
            color=band.color,
        )
        for band in TIER_BANDS
    ]


@dataclass(frozen=True)
class StressResponse:
    category: StressCategory
    color: str


STRESS_COLORS = {
    StressCategory.enhanced: "#10B981",
    StressCategory.resilient: "#3B82F6",
    StressCategory.affected: "#F59E0B",
}


def classify_stress_response(low_stress_score: float, high_stress_score: float) -> StressResponse:
    """Enhanced if the student scores clearly better under stress, affected if clearly worse."""
    difference = high_stress_score - low_stress_score
    if difference >= STRESS_RESPONSE_THRESHOLD:
        category = StressCategory.enhanced
    elif difference <= -STRESS_RESPONSE_THRESHOLD:
        category = StressCategory.affected
    else:
        category = StressCategory.resilient
    return StressResponse(category=category, color=STRESS_COLORS[category])


def summarize_stress_responses(
    students: Iterable[StudentPerformanceRecord],
) -> dict[StressCategory, list[str]]:
    """Student names per stress category (every category present, maybe empty)."""
    summary: dict[StressCategory, list[str]] = {category: [] for category in StressCategory}
    for student in students:
        response = classify_stress_response(student.low_stress_score, student.high_stress_score)
        summary[response.category].append(student.name)
    return summary
