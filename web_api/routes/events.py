"""
Training event routes.

Endpoints:
- GET /api/events - Event list visible to the caller, filtered
- GET /api/events/{event_id}/analytics - Performance tiers and stress responses
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Any

import sentry_sdk
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from console_core.analytics import (
    AnalyticsPayloadError,
    AnalyticsReport,
    InsufficientDataError,
    classify_performance_tiers,
    classify_stress_response,
    summarize_stress_responses,
)
from console_core.countries import country_flag, country_name
from console_core.database import get_connection
from console_core.enums import DateRangePreset, EnrollmentType, EventStatus
from console_core.event_loader import EventListController, EventLoadError
from console_core.filters import FilterState, available_countries, available_regions, end_of_day
from console_core.identity import Identity, ImpersonationSession
from console_core.queries.analytics import get_analytics_payload
from console_core.queries.events import get_event_rows
from console_core.scope import build_query_scope
from web_api.auth import get_current_identity, get_impersonation_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


def _start_of(day: date | None) -> datetime | None:
    return datetime.combine(day, time.min, tzinfo=timezone.utc) if day else None


def _end_of(day: date | None) -> datetime | None:
    return end_of_day(_start_of(day)) if day else None


@router.get("")
async def list_events(
    search: str = "",
    status: list[EventStatus] = Query(default=[]),
    date_range: DateRangePreset = DateRangePreset.all,
    date_from: date | None = None,
    date_to: date | None = None,
    country: list[str] = Query(default=[]),
    region: list[str] = Query(default=[]),
    enrollment_type: list[EnrollmentType] = Query(default=[]),
    identity: Identity = Depends(get_current_identity),
    session: ImpersonationSession = Depends(get_impersonation_session),
) -> dict[str, Any]:
    """
    List training events visible to the caller.

    Scope follows the caller's memberships, or the impersonated organization
    while impersonation is active. Repeated query params (?status=a&status=b)
    form the set filters; an absent param means no restriction.
    """
    if date_range == DateRangePreset.custom and date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

    controller = EventListController(identity, session)
    controller.set_filters(
        FilterState(
            search=search.strip(),
            statuses=frozenset(status),
            date_range=date_range,
            date_from=_start_of(date_from),
            date_to=_end_of(date_to),
            countries=frozenset(country),
            regions=frozenset(region),
            enrollment_types=frozenset(enrollment_type),
        )
    )
    await controller.refresh()

    if controller.error is not None:
        raise HTTPException(status_code=502, detail="Could not load training events")

    view = controller.view
    return {
        "events": [event.to_dict() for event in view.filtered],
        "upcoming": [event.id for event in view.upcoming],
        "past": [event.id for event in view.past],
        "filter_options": {
            "countries": [
                {"code": code, "name": country_name(code), "flag": country_flag(code)}
                for code in available_countries(controller.events)
            ],
            "regions": available_regions(controller.events),
        },
        "scope": controller.scope.kind.value,
        "is_impersonating": session.state.is_active,
    }


@router.get("/{event_id}/analytics")
async def get_event_analytics(
    event_id: int,
    identity: Identity = Depends(get_current_identity),
    session: ImpersonationSession = Depends(get_impersonation_session),
) -> dict[str, Any]:
    """Classify the stored analytics for one closed course."""
    scope = build_query_scope(session.resolve(identity))

    try:
        async with get_connection() as conn:
            visible = await get_event_rows(conn, scope, event_id=event_id)
            payload = await get_analytics_payload(conn, event_id) if visible else None
    except SQLAlchemyError as e:
        error = EventLoadError("analytics", str(e))
        logger.error("Analytics load failed for event %s: %s", event_id, error)
        sentry_sdk.capture_exception(error)
        raise HTTPException(status_code=502, detail="Could not load analytics report")

    if not visible:
        raise HTTPException(status_code=404, detail="Training event not found")

    if payload is None:
        raise HTTPException(status_code=404, detail="No analytics report for this event")

    try:
        report = AnalyticsReport.parse_payload(payload)
    except AnalyticsPayloadError as e:
        logger.warning("Unusable analytics payload for event %s: %s", event_id, e)
        raise HTTPException(status_code=404, detail="No usable analytics report for this event")

    students = report.student_performance_data
    try:
        tiers = classify_performance_tiers(students)
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail=str(e))

    stress = []
    for student in students:
        response = classify_stress_response(student.low_stress_score, student.high_stress_score)
        stress.append(
            {
                "name": student.name,
                "low_stress_score": student.low_stress_score,
                "high_stress_score": student.high_stress_score,
                "category": response.category.value,
                "color": response.color,
            }
        )

    return {
        "report_id": report.report_id,
        "metadata": report.metadata,
        "total_students": len(students),
        "performance_tiers": [tier.to_dict() for tier in tiers],
        "stress_responses": stress,
        "stress_summary": {
            category.value: names
            for category, names in summarize_stress_responses(students).items()
        },
    }
