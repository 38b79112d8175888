"""Authentication headers sent by Convos clients."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from convos_gateway.auth.failures import InvalidInstallationId, InvalidSignature, MissingHeaders

APP_CHECK_HEADER = "X-Firebase-AppCheck"
INSTALLATION_ID_HEADER = "X-XMTP-InstallationId"
INBOX_ID_HEADER = "X-XMTP-InboxId"
SIGNATURE_HEADER = "X-XMTP-Signature"

REQUIRED_HEADERS = (APP_CHECK_HEADER, INSTALLATION_ID_HEADER, INBOX_ID_HEADER, SIGNATURE_HEADER)


def _decode_hex(value: str) -> bytes:
    # bytes.fromhex tolerates whitespace between byte pairs; the wire format doesn't.
    if not value or any(ch.isspace() for ch in value):
        raise ValueError("empty or whitespace-containing hex string")
    return bytes.fromhex(value)


def _strip_0x(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


@dataclass(frozen=True)
class AuthHeaders:
    """Decoded credentials from one request.

    ``installation_id`` is the raw installation public key and
    ``installation_signature`` the raw signature over ``attestation_token``.
    """

    attestation_token: str
    installation_id: bytes
    inbox_id: str
    installation_signature: bytes

    @property
    def installation_id_hex(self) -> str:
        return self.installation_id.hex()

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "AuthHeaders":
        """Build from request headers; names match case-insensitively.

        Raises :class:`MissingHeaders` when any header is absent or empty,
        then :class:`InvalidInstallationId` / :class:`InvalidSignature` for
        malformed hex.  Presence is checked for all four before decoding.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        values = {name: lowered.get(name.lower()) for name in REQUIRED_HEADERS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise MissingHeaders(", ".join(missing))

        # Installation IDs travel without a 0x prefix.
        try:
            installation_id = _decode_hex(values[INSTALLATION_ID_HEADER])
        except ValueError as exc:
            raise InvalidInstallationId(exc) from exc

        # Signatures may or may not carry one, depending on the client.
        try:
            signature = _decode_hex(_strip_0x(values[SIGNATURE_HEADER]))
        except ValueError as exc:
            raise InvalidSignature(exc) from exc

        return cls(
            attestation_token=values[APP_CHECK_HEADER],
            installation_id=installation_id,
            inbox_id=values[INBOX_ID_HEADER],
            installation_signature=signature,
        )
