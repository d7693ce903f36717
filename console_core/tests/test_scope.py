"""Tests for turning resolved identities into query scope."""

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from console_core.enums import Role
from console_core.identity import IdentityResolution
from console_core.queries.events import build_event_query
from console_core.scope import (
    EMPTY,
    UNRESTRICTED,
    QueryScope,
    ScopeKind,
    build_query_scope,
    organization_scope,
)
from console_core.tables import course_instances


def _resolution(org_ids, internal=False, impersonating=False):
    return IdentityResolution(
        effective_org_ids=org_ids,
        is_internal=internal,
        is_impersonating=impersonating,
        effective_role=Role.staff if internal else Role.manager,
    )


def _sql(query) -> str:
    return str(
        query.compile(
            dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
        )
    )


class TestBuildQueryScope:
    def test_unrestricted_for_internal_staff(self):
        assert build_query_scope(_resolution(None, internal=True)) == UNRESTRICTED

    def test_empty_membership_set_is_empty_scope(self):
        scope = build_query_scope(_resolution(frozenset()))
        assert scope == EMPTY
        assert scope.is_empty

    def test_restricted_to_effective_orgs(self):
        scope = build_query_scope(_resolution(frozenset({"b", "a"})))
        assert scope.kind == ScopeKind.restricted
        assert scope.org_ids == frozenset({"a", "b"})

    def test_impersonation_yields_single_org(self):
        scope = build_query_scope(
            _resolution(frozenset({"org-x"}), internal=True, impersonating=True)
        )
        assert scope == organization_scope("org-x")


class TestApply:
    def test_unrestricted_adds_no_where_clause(self):
        sql = _sql(UNRESTRICTED.apply(select(course_instances.c.id)))
        assert "WHERE" not in sql

    def test_restricted_adds_in_clause(self):
        scope = QueryScope(ScopeKind.restricted, frozenset({"bravo", "alpha"}))
        sql = _sql(scope.apply(select(course_instances.c.id)))
        assert "course_instances.host_client_id IN (" in sql
        assert sql.index("'alpha'") < sql.index("'bravo'")

    def test_empty_scope_refuses_to_build_query(self):
        with pytest.raises(ValueError):
            EMPTY.apply(select(course_instances.c.id))

    def test_event_query_carries_scope(self):
        sql = _sql(build_event_query(organization_scope("alpha")))
        assert "host_client_id IN (" in sql
        assert "'alpha'" in sql
        assert "ORDER BY course_instances.start_date" in sql


class TestCacheKey:
    def test_order_independent(self):
        a = QueryScope(ScopeKind.restricted, frozenset({"x", "y"}))
        b = QueryScope(ScopeKind.restricted, frozenset({"y", "x"}))
        assert a.cache_key() == b.cache_key() == ("restricted", "x", "y")

    def test_distinguishes_kinds(self):
        assert UNRESTRICTED.cache_key() != EMPTY.cache_key()
