"""Session tokens minted by ``POST /api/v1/authenticate``.

A session token is an HS256 JWT carrying the caller's inbox and installation
IDs.  Nothing is stored server-side; a token is valid until ``exp``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt  # PyJWT

ALGORITHM = "HS256"
SESSION_HEADER = "X-Convos-AuthToken"


class SessionTokenError(Exception):
    """A session token could not be minted or decoded."""


@dataclass(frozen=True)
class SessionClaims:
    inbox_id: str
    installation_id: str
    issued_at: datetime
    expires_at: datetime


def mint_session_token(
    inbox_id: str,
    installation_id: str,
    secret: str | None,
    ttl_seconds: int = 3600,
    now: datetime | None = None,
) -> str:
    """Sign a session token valid for *ttl_seconds* from *now*."""
    if not secret:
        raise SessionTokenError("JWT_SECRET is not set")
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "inboxId": inbox_id,
        "installationId": installation_id,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=ttl_seconds),
        # Distinguishes tokens minted within the same second.
        "jti": uuid.uuid4().hex,
    }
    try:
        return jwt.encode(payload, secret, algorithm=ALGORITHM)
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        raise SessionTokenError(f"could not sign session token: {exc}") from exc


def decode_session_token(token: str, secret: str | None) -> SessionClaims:
    """Verify signature and expiry of *token*.  Raises :class:`SessionTokenError`."""
    if not secret:
        raise SessionTokenError("JWT_SECRET is not set")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.PyJWTError as exc:
        raise SessionTokenError(str(exc)) from exc

    inbox_id = payload.get("inboxId")
    installation_id = payload.get("installationId")
    if not isinstance(inbox_id, str) or not isinstance(installation_id, str):
        raise SessionTokenError("token is missing inboxId or installationId")

    return SessionClaims(
        inbox_id=inbox_id,
        installation_id=installation_id,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
