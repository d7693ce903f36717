"""
Identity and impersonation resolution.

An actor has a role and a set of organization memberships. Internal staff
(superadmin/admin/staff) may "view as" a client organization; while that
overlay is active every read is narrowed to exactly that organization,
whatever the actor's own role is.

The overlay is an explicit ImpersonationSession object handed to whoever
builds queries, persisted through a KeyValueStorage port under a fixed key so
it survives reloads.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Callable

from .enums import Role
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

IMPERSONATION_STORAGE_KEY = "impersonationState"

# Role the actor takes on inside the impersonated organization
IMPERSONATED_ROLE = Role.client_admin


@dataclass(frozen=True)
class Identity:
    """Who the signed-in actor is. Fixed for the lifetime of a session."""

    user_id: str
    role: Role
    organization_ids: frozenset[str] = field(default_factory=frozenset)
    team_organization_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_internal(self) -> bool:
        return self.role.is_internal

    @property
    def membership_org_ids(self) -> frozenset[str]:
        """Direct and team memberships combined."""
        return self.organization_ids | self.team_organization_ids


@dataclass(frozen=True)
class ImpersonationState:
    is_active: bool = False
    original_role: Role | None = None
    impersonated_org_id: str | None = None
    impersonated_role: Role | None = None

    def __post_init__(self):
        if self.is_active != (self.impersonated_org_id is not None):
            raise ValueError(
                "Impersonation state is active iff an organization is set "
                f"(is_active={self.is_active}, org={self.impersonated_org_id!r})"
            )

    def to_json(self) -> str:
        return json.dumps(
            {
                "isImpersonating": self.is_active,
                "originalRole": self.original_role.value if self.original_role else None,
                "impersonatedClientId": self.impersonated_org_id,
                "impersonatedRole": (
                    self.impersonated_role.value if self.impersonated_role else None
                ),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "ImpersonationState":
        """
        Parse persisted state.

        Raises:
            ValueError: If the payload is not a valid state object.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Impersonation state must be a JSON object")

        def _role(value) -> Role | None:
            return Role(value) if value is not None else None

        org_id = data.get("impersonatedClientId")
        if org_id is not None and not isinstance(org_id, str):
            raise ValueError("impersonatedClientId must be a string")
        is_active = data.get("isImpersonating")
        if not isinstance(is_active, bool):
            raise ValueError("isImpersonating must be a boolean")

        return cls(
            is_active=is_active,
            original_role=_role(data.get("originalRole")),
            impersonated_org_id=org_id,
            impersonated_role=_role(data.get("impersonatedRole")),
        )


INACTIVE = ImpersonationState()


@dataclass(frozen=True)
class IdentityResolution:
    """
    Resolved read scope for an actor.

    effective_org_ids is None when the actor is unrestricted (internal staff,
    not impersonating). An empty frozenset means "no organizations at all".
    """

    effective_org_ids: frozenset[str] | None
    is_internal: bool
    is_impersonating: bool
    effective_role: Role

    @property
    def is_unrestricted(self) -> bool:
        return self.effective_org_ids is None


def resolve_identity(
    identity: Identity, impersonation: ImpersonationState = INACTIVE
) -> IdentityResolution:
    """Work out which organizations the actor's reads should be scoped to."""
    if impersonation.is_active:
        return IdentityResolution(
            effective_org_ids=frozenset({impersonation.impersonated_org_id}),
            is_internal=identity.is_internal,
            is_impersonating=True,
            effective_role=impersonation.impersonated_role or IMPERSONATED_ROLE,
        )

    if not identity.is_internal:
        return IdentityResolution(
            effective_org_ids=identity.membership_org_ids,
            is_internal=False,
            is_impersonating=False,
            effective_role=identity.role,
        )

    return IdentityResolution(
        effective_org_ids=None,
        is_internal=True,
        is_impersonating=False,
        effective_role=identity.role,
    )


class ImpersonationSession:
    """
    Holds the impersonation overlay for one actor.

    Listeners registered with on_change() run synchronously inside
    start_impersonation()/exit_impersonation(), before either returns, so
    dependent scope is recomputed before any caller can issue a new fetch.
    """

    def __init__(self, storage: KeyValueStorage):
        self._storage = storage
        self._state = INACTIVE
        self._listeners: list[Callable[[ImpersonationState], None]] = []
        self.load()

    @property
    def state(self) -> ImpersonationState:
        return self._state

    def on_change(
        self, listener: Callable[[ImpersonationState], None]
    ) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def load(self) -> ImpersonationState:
        """(Re)read persisted state. Malformed entries are cleared, never raised."""
        raw = self._storage.get_item(IMPERSONATION_STORAGE_KEY)
        if raw is None:
            self._state = INACTIVE
            return self._state

        try:
            self._state = ImpersonationState.from_json(raw)
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Discarding malformed impersonation state: %s", e)
            self._storage.remove_item(IMPERSONATION_STORAGE_KEY)
            self._state = INACTIVE
        return self._state

    def start_impersonation(self, org_id: str, current_role: Role) -> ImpersonationState:
        if not org_id:
            raise ValueError("org_id is required to start impersonation")
        new_state = ImpersonationState(
            is_active=True,
            original_role=current_role,
            impersonated_org_id=org_id,
            impersonated_role=IMPERSONATED_ROLE,
        )
        self._storage.set_item(IMPERSONATION_STORAGE_KEY, new_state.to_json())
        self._set_state(new_state)
        logger.info("Impersonation started for organization %s (role %s)", org_id, current_role.value)
        return new_state

    def exit_impersonation(self) -> ImpersonationState:
        self._storage.remove_item(IMPERSONATION_STORAGE_KEY)
        self._set_state(INACTIVE)
        logger.info("Impersonation ended")
        return INACTIVE

    def resolve(self, identity: Identity) -> IdentityResolution:
        return resolve_identity(identity, self._state)

    def _set_state(self, state: ImpersonationState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
