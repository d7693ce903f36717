"""Reads that establish who an actor is and which organizations they belong to."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection

from ..enums import AppRole, ClientRole, Role
from ..identity import Identity
from ..tables import client_users, groups, profiles, teams, user_teams

# Highest first; an actor in several organizations gets their strongest role
CLIENT_ROLE_PRECEDENCE = (ClientRole.client_admin, ClientRole.manager, ClientRole.supervisor)

INTERNAL_APP_ROLES = {AppRole.superadmin, AppRole.admin, AppRole.staff}


async def get_direct_memberships(conn: AsyncConnection, user_id: str) -> dict[str, ClientRole | None]:
    """Active client_users memberships: client_id -> client role."""
    result = await conn.execute(
        select(client_users.c.client_id, client_users.c.role).where(
            (client_users.c.user_id == user_id) & (client_users.c.status == "active")
        )
    )
    return {row["client_id"]: row["role"] for row in result.mappings()}


async def get_team_organization_ids(conn: AsyncConnection, user_id: str) -> set[str]:
    """Organizations reached through team membership (team -> group -> client)."""
    result = await conn.execute(
        select(groups.c.client_id)
        .select_from(user_teams)
        .join(teams, user_teams.c.team_id == teams.c.id)
        .join(groups, teams.c.group_id == groups.c.id)
        .where(user_teams.c.user_id == user_id)
        .distinct()
    )
    return {row["client_id"] for row in result.mappings()}


def _client_role(roles) -> Role:
    present = {ClientRole(r) for r in roles if r is not None}
    for candidate in CLIENT_ROLE_PRECEDENCE:
        if candidate in present:
            return Role(candidate.value)
    # Members without an explicit client role get the least privileged one
    return Role.supervisor


async def get_identity(conn: AsyncConnection, user_id: str) -> Identity | None:
    """
    Build the Identity for a profile id.

    Returns None if the profile does not exist.
    """
    result = await conn.execute(select(profiles.c.role).where(profiles.c.id == user_id))
    row = result.mappings().first()
    if not row:
        return None

    app_role = AppRole(row["role"])
    if app_role in INTERNAL_APP_ROLES:
        return Identity(user_id=user_id, role=Role(app_role.value))

    direct = await get_direct_memberships(conn, user_id)
    team_orgs = await get_team_organization_ids(conn, user_id)
    return Identity(
        user_id=user_id,
        role=_client_role(direct.values()),
        organization_ids=frozenset(direct),
        team_organization_ids=frozenset(team_orgs),
    )
