"""Request authenticator.

Decides whether a request comes from a currently installed, genuine client of
a given XMTP inbox.  Checks run strictly in order and the first failure
short-circuits the rest:

1. header presence and hex decoding (no network)
2. installation authorization against the XMTP network
3. Ed25519 signature over the App Check token by the installation key
4. App Check attestation (when enabled)

Nothing is retried and no state is shared between requests.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from convos_gateway.auth.failures import (
    AuthFailure,
    InstallationValidationFailed,
    InvalidAttestation,
    InvalidInstallationId,
    InvalidSignature,
)
from convos_gateway.auth.headers import AuthHeaders
from convos_gateway.auth.signature import verify_installation_signature
from convos_gateway.utils.logger import bind_auth_context
from convos_gateway.utils.metrics import record_auth_attempt, record_oracle_call

logger = logging.getLogger("convos.auth")


class InstallationAuthorizer(Protocol):
    async def is_installation_authorized(self, inbox_id: str, installation_id: bytes) -> bool: ...


class AttestationVerifier(Protocol):
    async def verify(self, token: str) -> Mapping[str, Any]: ...


@dataclass(frozen=True)
class VerifiedInstallation:
    """Identity proven by a successful authentication."""

    inbox_id: str
    installation_id: str


class RequestAuthenticator:
    """Runs the installation / signature / attestation checks for one request."""

    def __init__(
        self,
        installations: InstallationAuthorizer,
        attestation: AttestationVerifier | None = None,
        attestation_enabled: bool = True,
    ):
        if attestation_enabled and attestation is None:
            raise ValueError("attestation is enabled but no attestation verifier was provided")
        self.installations = installations
        self.attestation = attestation
        self.attestation_enabled = attestation_enabled

    async def authenticate(self, headers: Mapping[str, str], surface: str = "gate") -> VerifiedInstallation:
        """Return the verified identity or raise an :class:`AuthFailure`."""
        started = time.monotonic()
        try:
            verified = await self._run(headers)
        except AuthFailure as failure:
            record_auth_attempt(surface, failure.code, time.monotonic() - started)
            raise
        record_auth_attempt(surface, "success", time.monotonic() - started)
        return verified

    async def _run(self, headers: Mapping[str, str]) -> VerifiedInstallation:
        try:
            auth = AuthHeaders.from_headers(headers)
        except AuthFailure as failure:
            logger.debug("Rejected before verification: %s", failure)
            raise

        bind_auth_context(auth.inbox_id, auth.installation_id_hex)

        await self._check_installation(auth)
        self._check_signature(auth)
        if self.attestation_enabled:
            await self._check_attestation(auth)

        logger.info("Authenticated inbox %s installation %s", auth.inbox_id, auth.installation_id_hex)
        return VerifiedInstallation(inbox_id=auth.inbox_id, installation_id=auth.installation_id_hex)

    async def _check_installation(self, auth: AuthHeaders) -> None:
        try:
            authorized = await self.installations.is_installation_authorized(
                auth.inbox_id, auth.installation_id
            )
        except Exception as exc:
            record_oracle_call("xmtp", "error")
            logger.error(
                "Installation validation failed for inbox %s: %s", auth.inbox_id, exc,
                exc_info=exc,
            )
            raise InstallationValidationFailed(exc) from exc

        record_oracle_call("xmtp", "authorized" if authorized else "unauthorized")
        if not authorized:
            logger.error(
                "Installation %s is not authorized for inbox %s",
                auth.installation_id_hex, auth.inbox_id,
            )
            raise InvalidInstallationId()

    def _check_signature(self, auth: AuthHeaders) -> None:
        if not verify_installation_signature(
            auth.attestation_token, auth.installation_signature, auth.installation_id
        ):
            logger.error(
                "Signature check failed for inbox %s installation %s",
                auth.inbox_id, auth.installation_id_hex,
            )
            raise InvalidSignature()

    async def _check_attestation(self, auth: AuthHeaders) -> None:
        try:
            await self.attestation.verify(auth.attestation_token)
        except Exception as exc:
            record_oracle_call("app_check", "rejected")
            logger.error("App Check verification failed for inbox %s: %s", auth.inbox_id, exc)
            raise InvalidAttestation(exc) from exc
        record_oracle_call("app_check", "verified")
