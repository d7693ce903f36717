"""
Impersonation routes ("view as organization").

Endpoints:
- GET /api/impersonation - Current overlay state
- POST /api/impersonation - Start viewing as a client organization (internal staff only)
- DELETE /api/impersonation - Stop impersonating
"""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from console_core.identity import Identity, ImpersonationSession, ImpersonationState
from web_api.auth import get_current_identity, get_impersonation_session

router = APIRouter(prefix="/api/impersonation", tags=["impersonation"])


class StartImpersonationRequest(BaseModel):
    """Request body for starting impersonation."""

    client_id: UUID


def _state_response(state: ImpersonationState) -> dict[str, Any]:
    return {
        "is_impersonating": state.is_active,
        "original_role": state.original_role.value if state.original_role else None,
        "impersonated_client_id": state.impersonated_org_id,
        "impersonated_role": state.impersonated_role.value if state.impersonated_role else None,
    }


@router.get("")
async def get_impersonation(
    session: ImpersonationSession = Depends(get_impersonation_session),
) -> dict[str, Any]:
    return _state_response(session.state)


@router.post("")
async def start_impersonation(
    request: StartImpersonationRequest,
    identity: Identity = Depends(get_current_identity),
    session: ImpersonationSession = Depends(get_impersonation_session),
) -> dict[str, Any]:
    """Only internal staff may view the console as a client organization.

    client_id must be a clients.id UUID; anything else is a 422 and is never
    stored.
    """
    if not identity.is_internal:
        raise HTTPException(status_code=403, detail="Only internal staff can impersonate")
    state = session.start_impersonation(str(request.client_id), identity.role)
    return _state_response(state)


@router.delete("")
async def exit_impersonation(
    session: ImpersonationSession = Depends(get_impersonation_session),
) -> dict[str, Any]:
    return _state_response(session.exit_impersonation())
