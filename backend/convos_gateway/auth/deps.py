"""FastAPI dependencies that gate requests.

- ``require_installation`` runs the full header verification on every call.
- ``require_session`` accepts a session token minted by ``POST /api/v1/authenticate``.

Both reject with an empty body; see :class:`~convos_gateway.auth.failures.GateRejection`.
"""

from __future__ import annotations

import logging

from fastapi import Header, Request, status

from convos_gateway.auth.authenticator import RequestAuthenticator, VerifiedInstallation
from convos_gateway.auth.failures import AuthFailure, GateRejection
from convos_gateway.auth.session import SESSION_HEADER, SessionClaims, SessionTokenError, decode_session_token

logger = logging.getLogger("convos.auth")


def get_authenticator(request: Request) -> RequestAuthenticator:
    return request.app.state.authenticator


async def require_installation(request: Request) -> VerifiedInstallation:
    """Return the caller's verified installation, or reject the request.

    Verification rejections map to 401; an unreachable XMTP network or any
    unexpected error inside the verification flow maps to 500.
    """
    authenticator = get_authenticator(request)
    try:
        verified = await authenticator.authenticate(request.headers, surface="gate")
    except AuthFailure as failure:
        raise GateRejection(failure.gate_status_code) from failure
    except Exception as exc:
        logger.exception("Unexpected error while authenticating request")
        raise GateRejection(status.HTTP_500_INTERNAL_SERVER_ERROR) from exc

    request.state.installation = verified
    return verified


async def require_session(
    request: Request,
    auth_token: str | None = Header(default=None, alias=SESSION_HEADER),
) -> SessionClaims:
    """Return the claims of a valid session token, or reject with 401."""
    if not auth_token:
        raise GateRejection(status.HTTP_401_UNAUTHORIZED)

    secret = request.app.state.settings.JWT_SECRET
    if not secret:
        logger.error("JWT_SECRET is not set; cannot verify session tokens")
        raise GateRejection(status.HTTP_401_UNAUTHORIZED)

    try:
        claims = decode_session_token(auth_token, secret)
    except SessionTokenError as exc:
        logger.debug("Session token rejected: %s", exc)
        raise GateRejection(status.HTTP_401_UNAUTHORIZED) from exc

    request.state.session = claims
    return claims
