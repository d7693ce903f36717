"""
JWT authentication utilities for the web API.

The session cookie carries an HS256-signed JWT whose `sub` is the Supabase
profile id. Authorization is still enforced by Row Level Security; these
dependencies only decide which reads to issue.
"""

import os
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request

from console_core.config import get_impersonation_state_dir
from console_core.database import get_connection
from console_core.identity import Identity, ImpersonationSession
from console_core.queries.identity import get_identity
from console_core.storage import JsonFileStorage

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24


def create_jwt(user_id: str, email: str | None = None) -> str:
    """
    Create a signed JWT token for an authenticated profile.

    Args:
        user_id: The profile id (auth user id)
        email: Optional email, informational only

    Returns:
        Signed JWT token string
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


async def get_current_user(request: Request) -> dict:
    """
    FastAPI dependency to get the current authenticated user.

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    token = request.cookies.get("session")
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = verify_jwt(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload


async def get_current_identity(user: dict = Depends(get_current_user)) -> Identity:
    """FastAPI dependency resolving the caller's role and memberships."""
    async with get_connection() as conn:
        identity = await get_identity(conn, user["sub"])
    if identity is None:
        raise HTTPException(status_code=403, detail="Profile not found")
    return identity


def get_impersonation_session(user: dict = Depends(get_current_user)) -> ImpersonationSession:
    """Impersonation overlay for the caller, persisted in one file per profile."""
    try:
        profile_id = UUID(str(user["sub"]))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid session subject")
    path = get_impersonation_state_dir() / f"{profile_id}.json"
    return ImpersonationSession(JsonFileStorage(path))
