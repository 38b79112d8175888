"""Ed25519 verification of installation-key signatures."""

from __future__ import annotations

import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = logging.getLogger("convos.auth.signature")


def verify_installation_signature(message: str, signature: bytes, installation_key: bytes) -> bool:
    """Return True if *signature* is a valid signature of *message* by *installation_key*.

    *installation_key* is the raw 32-byte Ed25519 public key that XMTP uses as
    the installation ID.  Keys or signatures of the wrong length verify as False.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(installation_key)
    except ValueError as exc:
        logger.debug("Installation key is not a valid Ed25519 public key: %s", exc)
        return False

    try:
        public_key.verify(signature, message.encode("utf-8"))
    except (InvalidSignature, ValueError):
        return False
    return True
