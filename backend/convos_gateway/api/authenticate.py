"""Authentication API: session token issuance and header verification.

Endpoints
---------
POST /api/v1/authenticate          verified headers -> session JWT
GET  /api/v1/authenticate/verify   run the header gate, echo the verified identity
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from convos_gateway.auth.authenticator import RequestAuthenticator, VerifiedInstallation
from convos_gateway.auth.deps import get_authenticator, require_installation
from convos_gateway.auth.failures import TokenMintingFailed
from convos_gateway.auth.session import SessionTokenError, mint_session_token
from convos_gateway.utils.metrics import record_session_token_issued

logger = logging.getLogger("convos.auth")
router = APIRouter()


# -- Schemas --

class AuthenticateResponse(BaseModel):
    token: str


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None


class InstallationOut(BaseModel):
    inbox_id: str = Field(serialization_alias="inboxId")
    installation_id: str = Field(serialization_alias="installationId")


# -- Routes --

@router.post(
    "/authenticate",
    response_model=AuthenticateResponse,
    summary="Exchange signed XMTP/App Check headers for a session token",
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["auth"],
)
async def authenticate(
    request: Request,
    authenticator: RequestAuthenticator = Depends(get_authenticator),
) -> AuthenticateResponse:
    """Verify the caller's installation, signature and attestation, then mint a JWT.

    Rejections are raised as ``AuthFailure`` and rendered by the app-level
    handler as ``{"error": ..., "details": ...}``.
    """
    settings = request.app.state.settings
    verified = await authenticator.authenticate(request.headers, surface="token")

    try:
        token = mint_session_token(
            verified.inbox_id,
            verified.installation_id,
            settings.JWT_SECRET,
            ttl_seconds=settings.SESSION_TOKEN_TTL_SECONDS,
        )
    except SessionTokenError as exc:
        logger.error("Failed to mint session token for inbox %s: %s", verified.inbox_id, exc)
        raise TokenMintingFailed(exc) from exc

    record_session_token_issued()
    logger.info("Issued session token for inbox %s", verified.inbox_id)
    return AuthenticateResponse(token=token)


@router.get(
    "/authenticate/verify",
    response_model=InstallationOut,
    summary="Verify XMTP/App Check headers without issuing a token",
    tags=["auth"],
)
async def verify(
    installation: VerifiedInstallation = Depends(require_installation),
) -> InstallationOut:
    return InstallationOut(
        inbox_id=installation.inbox_id,
        installation_id=installation.installation_id,
    )
