"""Header-based authentication for the Convos gateway.

Clients prove three things on every authenticated request:

1. ``X-XMTP-InstallationId`` is a live installation of ``X-XMTP-InboxId``
   on the XMTP network.
2. ``X-XMTP-Signature`` is that installation's Ed25519 signature over the
   ``X-Firebase-AppCheck`` token.
3. The App Check token itself is valid for this app (toggle with
   ``APP_CHECK_ENABLED``).

``POST /api/v1/authenticate`` exchanges those headers for a one-hour session
token, which ``require_session`` accepts via ``X-Convos-AuthToken``.
"""

from convos_gateway.auth.authenticator import RequestAuthenticator, VerifiedInstallation
from convos_gateway.auth.deps import require_installation, require_session
from convos_gateway.auth.failures import AuthFailure, GateRejection
from convos_gateway.auth.session import SessionClaims

__all__ = [
    "AuthFailure",
    "GateRejection",
    "RequestAuthenticator",
    "SessionClaims",
    "VerifiedInstallation",
    "require_installation",
    "require_session",
]
