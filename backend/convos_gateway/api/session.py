"""Session API: identity behind the current session token."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from convos_gateway.auth.deps import require_session
from convos_gateway.auth.session import SessionClaims

router = APIRouter()


class MeResponse(BaseModel):
    inbox_id: str = Field(serialization_alias="inboxId")
    installation_id: str = Field(serialization_alias="installationId")
    expires_at: datetime = Field(serialization_alias="expiresAt")


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Return the identity of the current session token",
    tags=["auth"],
)
async def me(claims: SessionClaims = Depends(require_session)) -> MeResponse:
    """Return inbox and installation IDs carried by ``X-Convos-AuthToken``."""
    return MeResponse(
        inbox_id=claims.inbox_id,
        installation_id=claims.installation_id,
        expires_at=claims.expires_at,
    )
