"""Application settings, loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Public XMTP network endpoints, keyed by XMTP_ENV.
XMTP_API_URLS: dict[str, str] = {
    "local": "http://localhost:5555",
    "dev": "https://dev.xmtp.network",
    "production": "https://production.xmtp.network",
}


class Settings(BaseSettings):
    # ── Server ──────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    DEBUG: bool = False

    # ── CORS ────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = ["*"]

    # ── Logging ─────────────────────────────────────────────────
    # LOG_FORMAT=json switches the root handler to structured JSON lines.
    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    # ── XMTP network (installation-authorization oracle) ───────
    XMTP_ENV: Literal["local", "dev", "production"] = "dev"

    # Overrides the per-environment base URL, e.g. a private node.
    XMTP_API_URL: str | None = None

    # No local timeout unless set; a slow network stalls only that request.
    XMTP_API_TIMEOUT_SECONDS: float | None = None

    # ── Session tokens ──────────────────────────────────────────
    # HS256 secret for tokens minted by POST /api/v1/authenticate.
    # Checked on first use; startup only logs a warning when missing.
    JWT_SECRET: str | None = None

    SESSION_TOKEN_TTL_SECONDS: int = 3600

    # ── Firebase App Check (attestation oracle) ─────────────────
    # Set APP_CHECK_ENABLED=false to skip attestation (e.g. runtimes where
    # the Admin SDK cannot verify tokens).  Installation and signature
    # checks always run.
    APP_CHECK_ENABLED: bool = True

    # Service-account JSON (the whole document, not a path).  When unset the
    # Admin SDK falls back to Application Default Credentials.
    FIREBASE_SERVICE_ACCOUNT: str | None = None
    FIREBASE_PROJECT_ID: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _normalise(self) -> "Settings":
        if self.XMTP_API_URL:
            object.__setattr__(self, "XMTP_API_URL", self.XMTP_API_URL.rstrip("/"))
        return self

    @property
    def xmtp_api_url(self) -> str:
        """Base URL of the XMTP identity API for the configured environment."""
        return self.XMTP_API_URL or XMTP_API_URLS[self.XMTP_ENV]


settings = Settings()
