"""
Access scope for event reads.

Turns a resolved identity into the organization constraint applied to the
course_instances query. This only narrows what the console asks for; Row
Level Security decides what the database actually returns.
"""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import Select

from .identity import IdentityResolution
from .tables import course_instances


class ScopeKind(str, Enum):
    unrestricted = "unrestricted"
    restricted = "restricted"
    empty = "empty"


@dataclass(frozen=True)
class QueryScope:
    kind: ScopeKind
    org_ids: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return self.kind == ScopeKind.empty

    def cache_key(self) -> tuple:
        """Stable, hashable part of a cache key for this scope."""
        return (self.kind.value, *sorted(self.org_ids))

    def apply(self, query: Select) -> Select:
        """
        Constrain an event query to this scope.

        Raises:
            ValueError: For an empty scope - callers must short-circuit
                instead of issuing the query.
        """
        if self.kind == ScopeKind.unrestricted:
            return query
        if self.kind == ScopeKind.restricted:
            return query.where(course_instances.c.host_client_id.in_(sorted(self.org_ids)))
        raise ValueError("Empty scope must not be applied to a query")


UNRESTRICTED = QueryScope(ScopeKind.unrestricted)
EMPTY = QueryScope(ScopeKind.empty)


def build_query_scope(resolved: IdentityResolution) -> QueryScope:
    """Pick the organization constraint for an actor's event reads."""
    if resolved.effective_org_ids is None:
        return UNRESTRICTED
    if not resolved.effective_org_ids:
        # No memberships: return nothing rather than risk unscoped data
        return EMPTY
    return QueryScope(ScopeKind.restricted, frozenset(resolved.effective_org_ids))


def organization_scope(org_id: str) -> QueryScope:
    """Scope for a single hosting organization's event list."""
    return QueryScope(ScopeKind.restricted, frozenset({org_id}))
