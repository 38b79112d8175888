"""Rejection outcomes of the request authenticator.

Every way an authentication attempt can fail is one ``AuthFailure``
subclass.  Each subclass carries both of its HTTP mappings:

``status_code`` / ``error``
    Used by ``POST /api/v1/authenticate``, rendered as
    ``{"error": ..., "details": ...}``.
``gate_status_code``
    Used by the ``require_installation`` dependency, rendered with an empty
    body.

Oracle outages map to 400 on the token endpoint but 500 on the gate.
"""

from __future__ import annotations

from typing import Any


class AuthFailure(Exception):
    """Base class for authentication rejections."""

    code: str = "auth_failure"
    status_code: int = 400
    gate_status_code: int = 401
    error: str = "Authentication failed"

    def __init__(self, cause: BaseException | str | None = None) -> None:
        self.cause = cause
        super().__init__(self.error if cause is None else f"{self.error}: {cause}")

    @property
    def details(self) -> Any:
        return None

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        details = self.details
        if details is not None:
            body["details"] = details
        return body


class MissingHeaders(AuthFailure):
    code = "missing_headers"
    error = "Missing headers"


class InvalidInstallationId(AuthFailure):
    code = "invalid_installation_id"
    error = "Invalid installation ID"


class InstallationValidationFailed(AuthFailure):
    """The installation-authorization call itself failed (network, 5xx, bad payload)."""

    code = "installation_validation_failed"
    error = "Failed to validate installation ID"
    gate_status_code = 500

    @property
    def details(self) -> Any:
        return str(self.cause) if self.cause is not None else None


class InvalidSignature(AuthFailure):
    code = "invalid_signature"
    error = "Invalid signature"


class InvalidAttestation(AuthFailure):
    code = "invalid_attestation"
    error = "Invalid attestation token"
    status_code = 401


class TokenMintingFailed(AuthFailure):
    """Signing the session token failed; a server misconfiguration, not a bad caller."""

    code = "token_minting_failed"
    error = "Failed to create JWT token"
    status_code = 500
    gate_status_code = 500


class GateRejection(Exception):
    """Raised by request gates; rendered as an empty response with ``status_code``."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"request rejected with HTTP {status_code}")
