"""Test helpers shared across modules: client-side header signing."""

from __future__ import annotations

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-bytes"
APP_CHECK_TOKEN = "valid-app-check-token"
INBOX_ID = "5f1e0c3a9b7d4e2f8a6c1b0d9e8f7a6b5c4d3e2f1a0b9c8d7e6f5a4b3c2d1e0f"


def installation_id_hex(key: Ed25519PrivateKey) -> str:
    raw = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return raw.hex()


def signed_headers(
    key: Ed25519PrivateKey,
    token: str = APP_CHECK_TOKEN,
    inbox_id: str = INBOX_ID,
) -> dict[str, str]:
    """Headers a Convos client sends: the App Check token signed by its installation key."""
    return {
        "X-Firebase-AppCheck": token,
        "X-XMTP-InstallationId": installation_id_hex(key),
        "X-XMTP-InboxId": inbox_id,
        "X-XMTP-Signature": "0x" + key.sign(token.encode()).hex(),
    }


# Fixed Ed25519 installation key (RFC 8032 section 7.1, TEST 2) and its
# signature over APP_CHECK_TOKEN, hex-encoded the way clients send them
# (installation id bare, signature 0x-prefixed lowercase).
FIXED_INSTALLATION_SEED_HEX = "4ccd089b28ff96da9db6c346ec114e0f5b8a319f35aba624da8cf6ed4fb8a6fb"
FIXED_INSTALLATION_ID_HEX = "3d4017c3e843895a92b70aa74d1b7ebc9c982ccf2ec4968cc0cd55f12af4660c"
FIXED_APP_CHECK_SIGNATURE_HEX = (
    "0x77789d3ec6ff6b7a0075cf2385aa363533787bcf355e87680bfe756b346e1329"
    "99b5e5f8192ee6238e1adda719e67b979f16f46a0e662b1f1ed04ab5e3aab10f"
)


def fixed_headers() -> dict[str, str]:
    return {
        "X-Firebase-AppCheck": APP_CHECK_TOKEN,
        "X-XMTP-InstallationId": FIXED_INSTALLATION_ID_HEX,
        "X-XMTP-InboxId": INBOX_ID,
        "X-XMTP-Signature": FIXED_APP_CHECK_SIGNATURE_HEX,
    }
