"""Firebase App Check connector (attestation oracle).

Wraps the Firebase Admin SDK in an explicitly constructed object so that the
process bootstrap initialises it once and hands it to the authenticator.
The SDK's ``verify_token`` is blocking (it may fetch signing keys), so it
runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import firebase_admin
from firebase_admin import app_check, credentials

logger = logging.getLogger("convos.connectors.app_check")

DEFAULT_APP_NAME = "convos-app-check"


class AppCheckVerifier:
    """Verifies App Check tokens against a specific firebase ``App``."""

    def __init__(self, app: firebase_admin.App):
        self._app = app

    @classmethod
    def from_service_account(
        cls,
        service_account_json: str | None = None,
        project_id: str | None = None,
        name: str = DEFAULT_APP_NAME,
    ) -> "AppCheckVerifier":
        """Initialise (or reuse) the named firebase app.

        *service_account_json* is the full service-account document.  When
        omitted the Admin SDK uses Application Default Credentials.
        """
        try:
            return cls(firebase_admin.get_app(name))
        except ValueError:
            pass

        credential = None
        if service_account_json:
            try:
                info = json.loads(service_account_json)
            except json.JSONDecodeError as exc:
                raise ValueError("FIREBASE_SERVICE_ACCOUNT is not valid JSON") from exc
            credential = credentials.Certificate(info)

        options: dict[str, Any] = {}
        if project_id:
            options["projectId"] = project_id

        app = firebase_admin.initialize_app(credential, options or None, name=name)
        logger.info("Initialised firebase app '%s' for App Check", name)
        return cls(app)

    async def verify(self, token: str) -> dict[str, Any]:
        """Return the decoded App Check claims; raises on an invalid or expired token."""
        return await asyncio.to_thread(app_check.verify_token, token, self._app)
