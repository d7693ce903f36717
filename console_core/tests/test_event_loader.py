"""Tests for loading the event list and the latest-request-wins controller."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from console_core.allocations import AllocationRecord
from console_core.enums import EventStatus, Role
from console_core.event_loader import (
    EventListController,
    EventLoadError,
    fetch_training_events,
    load_training_events,
)
from console_core.events import RawEventRecord, transform_event
from console_core.filters import FilterState
from console_core.identity import Identity, ImpersonationSession
from console_core.query_cache import QueryCache
from console_core.scope import EMPTY, UNRESTRICTED, ScopeKind, organization_scope
from console_core.storage import MemoryStorage

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def raw_row(id, start_day=10, host="org-a"):
    return RawEventRecord.from_row(
        {
            "id": id,
            "start_date": datetime(2025, 3, start_day, tzinfo=timezone.utc),
            "host_client_id": host,
            "program_name": "Defensive Driving",
            "program_max_students": 12,
        }
    )


def _mock_connection():
    conn_ctx = MagicMock()
    conn_ctx.return_value.__aenter__ = AsyncMock(return_value=AsyncMock())
    conn_ctx.return_value.__aexit__ = AsyncMock(return_value=False)
    return conn_ctx


class TestFetchTrainingEvents:
    @pytest.mark.asyncio
    async def test_empty_scope_issues_no_reads(self):
        conn_ctx = _mock_connection()
        with patch("console_core.event_loader.get_connection", conn_ctx):
            assert await fetch_training_events(EMPTY) == []
        conn_ctx.assert_not_called()

    @pytest.mark.asyncio
    async def test_joins_allocations_onto_events(self):
        allocations = [
            AllocationRecord(event_id=1, seats_allocated=4, id=10),
            AllocationRecord(event_id=1, seats_allocated=3, id=11),
            AllocationRecord(event_id=2, seats_allocated=5, id=12),
        ]
        with (
            patch("console_core.event_loader.get_connection", _mock_connection()),
            patch(
                "console_core.event_loader.get_allocations",
                AsyncMock(return_value=allocations),
            ),
            patch(
                "console_core.event_loader.get_event_rows",
                AsyncMock(return_value=[raw_row(1), raw_row(3, start_day=12)]),
            ) as get_rows,
        ):
            events = await fetch_training_events(UNRESTRICTED, now=NOW)

        assert [(e.id, e.enrolled_count) for e in events] == [("1", 7), ("3", 0)]
        assert get_rows.call_args.args[1] == UNRESTRICTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing", ["get_allocations", "get_event_rows"])
    async def test_either_read_failing_fails_the_load(self, failing):
        error = OperationalError("SELECT 1", {}, Exception("connection reset"))
        patches = {
            "get_allocations": AsyncMock(return_value=[]),
            "get_event_rows": AsyncMock(return_value=[raw_row(1)]),
        }
        patches[failing] = AsyncMock(side_effect=error)

        with (
            patch("console_core.event_loader.get_connection", _mock_connection()),
            patch("console_core.event_loader.get_allocations", patches["get_allocations"]),
            patch("console_core.event_loader.get_event_rows", patches["get_event_rows"]),
            patch("console_core.event_loader.sentry_sdk.capture_exception") as capture,
        ):
            with pytest.raises(EventLoadError) as exc_info:
                await fetch_training_events(UNRESTRICTED)

        expected_stage = "allocations" if failing == "get_allocations" else "events"
        assert exc_info.value.stage == expected_stage
        capture.assert_called_once()

    @pytest.mark.asyncio
    async def test_load_is_cached_per_scope(self):
        fetch = AsyncMock(return_value=[])
        cache = QueryCache()
        with patch("console_core.event_loader.fetch_training_events", fetch):
            await load_training_events(organization_scope("org-a"), cache)
            await load_training_events(organization_scope("org-a"), cache)
            await load_training_events(organization_scope("org-b"), cache)
        assert fetch.await_count == 2


class FakeLoader:
    """Loader whose responses are released by the test, in any order."""

    def __init__(self):
        self.pending: list[tuple] = []

    async def __call__(self, scope):
        gate = asyncio.Event()
        result: dict = {}
        self.pending.append((scope, gate, result))
        await gate.wait()
        if "error" in result:
            raise result["error"]
        return result["events"]

    def release(self, index, events=None, error=None):
        _, gate, result = self.pending[index]
        if error is not None:
            result["error"] = error
        else:
            result["events"] = events or []
        gate.set()


def _controller(loader, storage=None):
    session = ImpersonationSession(storage or MemoryStorage())
    identity = Identity(user_id="u-1", role=Role.admin)
    controller = EventListController(identity, session, loader=loader, clock=lambda: NOW)
    return controller, session


def _training_event(id, host):
    return transform_event(raw_row(id, host=host), {}, now=NOW)


class TestEventListController:
    @pytest.mark.asyncio
    async def test_refresh_applies_result(self):
        loader = AsyncMock(return_value=[_training_event(1, "org-a")])
        controller, _ = _controller(loader)

        assert await controller.refresh() is True
        assert [e.id for e in controller.view.upcoming] == ["1"]
        assert controller.error is None

    @pytest.mark.asyncio
    async def test_impersonation_change_recomputes_scope_synchronously(self):
        controller, session = _controller(AsyncMock(return_value=[]))
        assert controller.scope == UNRESTRICTED

        session.start_impersonation("org-x", Role.admin)
        assert controller.scope == organization_scope("org-x")

        session.exit_impersonation()
        assert controller.scope.kind == ScopeKind.unrestricted

    @pytest.mark.asyncio
    async def test_response_for_previous_scope_is_discarded(self):
        loader = FakeLoader()
        controller, session = _controller(loader)

        first = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)
        session.start_impersonation("org-x", Role.admin)
        second = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)

        assert loader.pending[0][0] == UNRESTRICTED
        assert loader.pending[1][0] == organization_scope("org-x")

        # the newer request completes first, then the old one arrives late
        loader.release(1, [_training_event(2, "org-x")])
        assert await second is True
        loader.release(0, [_training_event(1, "org-a"), _training_event(2, "org-x")])
        assert await first is False

        assert [e.id for e in controller.events] == ["2"]

    @pytest.mark.asyncio
    async def test_late_error_for_old_scope_is_ignored(self):
        loader = FakeLoader()
        controller, session = _controller(loader)

        first = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)
        session.start_impersonation("org-x", Role.admin)
        second = asyncio.create_task(controller.refresh())
        await asyncio.sleep(0)

        loader.release(1, [_training_event(2, "org-x")])
        await second
        loader.release(0, error=EventLoadError("events", "timeout"))
        assert await first is False
        assert controller.error is None

    @pytest.mark.asyncio
    async def test_load_error_is_exposed(self):
        loader = AsyncMock(side_effect=EventLoadError("allocations", "boom"))
        controller, _ = _controller(loader)

        assert await controller.refresh() is True
        assert controller.error.stage == "allocations"
        assert controller.events == []

    @pytest.mark.asyncio
    async def test_set_filters_refilters_loaded_events(self):
        events = [_training_event(1, "org-a"), _training_event(2, "org-b")]
        controller, _ = _controller(AsyncMock(return_value=events))
        await controller.refresh()

        controller.set_filters(FilterState(search="nothing matches this"))
        assert controller.view.filtered == []

        controller.set_filters(FilterState().cleared())
        assert len(controller.view.filtered) == 2

    @pytest.mark.asyncio
    async def test_client_without_memberships_gets_empty_scope(self):
        loader = AsyncMock(return_value=[])
        session = ImpersonationSession(MemoryStorage())
        identity = Identity(user_id="u-2", role=Role.manager)
        controller = EventListController(identity, session, loader=loader, clock=lambda: NOW)

        assert controller.scope == EMPTY
        await controller.refresh()
        # the loader is handed the empty scope; fetch_training_events short-circuits it
        assert loader.await_args.args[0].is_empty

    @pytest.mark.asyncio
    async def test_cached_status_is_rederived_at_view_time(self):
        # fetched while the event was still ahead; served after it started
        fetched = transform_event(
            raw_row(1, start_day=1), {}, now=datetime(2025, 2, 28, tzinfo=timezone.utc)
        )
        assert fetched.status == EventStatus.scheduled
        session = ImpersonationSession(MemoryStorage())
        controller = EventListController(
            Identity(user_id="u-1", role=Role.admin),
            session,
            loader=AsyncMock(return_value=[fetched]),
            clock=lambda: NOW + timedelta(hours=1),
        )

        await controller.refresh()

        assert controller.view.past[0].status == EventStatus.completed
        assert controller.view.upcoming == []

    @pytest.mark.asyncio
    async def test_closed_controller_ignores_impersonation_changes(self):
        controller, session = _controller(AsyncMock(return_value=[]))
        controller.close()

        session.start_impersonation("org-x", Role.admin)

        assert controller.scope == UNRESTRICTED
        assert controller.generation == 0
