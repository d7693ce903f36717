"""
Fetching and assembling the training event list.

The allocation read and the scoped event read are independent, so they run
concurrently on separate pooled connections and are joined once both
complete. Any read failure aborts the whole load: callers get an
EventLoadError, never a list built from partial data.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

import sentry_sdk
from sqlalchemy.exc import SQLAlchemyError

from .allocations import aggregate_allocations
from .database import get_connection
from .events import TrainingEvent, transform_events, with_current_status
from .filters import FilteredEvents, FilterState, filter_events
from .identity import Identity, ImpersonationSession, ImpersonationState, resolve_identity
from .queries.events import get_allocations, get_event_rows
from .query_cache import QueryCache, QueryKeys, get_query_cache
from .scope import QueryScope, build_query_scope

logger = logging.getLogger(__name__)


class EventLoadError(Exception):
    """A read needed for the event list failed."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"Failed to load {stage}: {message}")
        self.stage = stage


async def _read_allocations():
    try:
        async with get_connection() as conn:
            return await get_allocations(conn)
    except SQLAlchemyError as e:
        raise EventLoadError("allocations", str(e)) from e


async def _read_events(scope: QueryScope):
    try:
        async with get_connection() as conn:
            return await get_event_rows(conn, scope)
    except SQLAlchemyError as e:
        raise EventLoadError("events", str(e)) from e


async def fetch_training_events(
    scope: QueryScope, now: datetime | None = None
) -> list[TrainingEvent]:
    """
    Read and join events visible under scope.

    An empty scope short-circuits to [] without any database read.

    Raises:
        EventLoadError: If either read fails.
    """
    if scope.is_empty:
        logger.info("Empty access scope, skipping event reads")
        return []

    try:
        allocations, rows = await asyncio.gather(_read_allocations(), _read_events(scope))
    except EventLoadError as e:
        logger.error("Event list load failed: %s", e)
        sentry_sdk.capture_exception(e)
        raise

    enrollment = aggregate_allocations(allocations)
    return transform_events(rows, enrollment, now)


async def load_training_events(
    scope: QueryScope, cache: QueryCache | None = None
) -> list[TrainingEvent]:
    """Cached fetch_training_events(), keyed by scope."""
    cache = cache or get_query_cache()
    return await cache.get_or_fetch(
        QueryKeys.training_events(scope.cache_key()),
        lambda: fetch_training_events(scope),
    )


EMPTY_VIEW = FilteredEvents(filtered=[], upcoming=[], past=[])


class EventListController:
    """
    The event list one actor is looking at.

    Latest request wins: each refresh() is tagged with a generation number,
    and changing impersonation or filters bumps it. A response that comes
    back for an older generation is dropped, so a list fetched under a
    previous scope can never replace the current one.
    """

    def __init__(
        self,
        identity: Identity,
        session: ImpersonationSession,
        loader: Callable[[QueryScope], Awaitable[list[TrainingEvent]]] = load_training_events,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.identity = identity
        self._loader = loader
        self._clock = clock
        self._generation = 0
        self.filters = FilterState()
        self.events: list[TrainingEvent] = []
        self.view: FilteredEvents = EMPTY_VIEW
        self.error: EventLoadError | None = None
        self.scope = build_query_scope(session.resolve(identity))
        self._unsubscribe = session.on_change(self._on_impersonation_change)

    @property
    def generation(self) -> int:
        return self._generation

    def _on_impersonation_change(self, state: ImpersonationState) -> None:
        # Runs synchronously inside start/exit, before any new fetch can start
        self.scope = build_query_scope(resolve_identity(self.identity, state))
        self._generation += 1
        self.events = []
        self.view = EMPTY_VIEW
        logger.debug("Scope changed to %s", self.scope.kind.value)

    def close(self) -> None:
        """Stop following impersonation changes on the session."""
        self._unsubscribe()

    def _apply_events(self, events: list[TrainingEvent]) -> None:
        now = self._clock()
        self.events = with_current_status(events, now)
        self.view = filter_events(self.events, self.filters, now)

    def set_filters(self, filters: FilterState) -> None:
        self.filters = filters
        self._generation += 1
        self._apply_events(self.events)

    async def refresh(self) -> bool:
        """
        Load events for the current scope and apply them if still current.

        Returns True if the response was applied, False if it was stale.
        """
        self._generation += 1
        generation = self._generation
        try:
            events = await self._loader(self.scope)
        except EventLoadError as e:
            if generation != self._generation:
                return False
            self.error = e
            self.events = []
            self.view = EMPTY_VIEW
            return True

        if generation != self._generation:
            logger.debug("Discarding stale event list (generation %d)", generation)
            return False

        self.error = None
        self._apply_events(events)
        return True
