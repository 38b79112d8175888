"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from convos_gateway.api.authenticate import router as authenticate_router
from convos_gateway.api.session import router as session_router
from convos_gateway.auth.authenticator import AttestationVerifier, InstallationAuthorizer, RequestAuthenticator
from convos_gateway.auth.failures import AuthFailure, GateRejection
from convos_gateway.config import Settings
from convos_gateway.config import settings as default_settings
from convos_gateway.connectors.app_check import AppCheckVerifier
from convos_gateway.connectors.xmtp_client import XmtpIdentityClient
from convos_gateway.utils.logger import setup_logger

logger = logging.getLogger("convos.main")


def _build_authenticator(
    settings: Settings,
    installations: InstallationAuthorizer | None,
    attestation: AttestationVerifier | None,
) -> tuple[RequestAuthenticator, XmtpIdentityClient | None]:
    """Construct the oracles once per process and wire them into the authenticator.

    Returns the authenticator plus the XMTP client when this factory created
    it, so the lifespan can close it.
    """
    owned_client: XmtpIdentityClient | None = None
    if installations is None:
        owned_client = XmtpIdentityClient(
            base_url=settings.xmtp_api_url,
            timeout=settings.XMTP_API_TIMEOUT_SECONDS,
        )
        installations = owned_client
        logger.info("XMTP identity API: %s (env=%s)", owned_client.base_url, settings.XMTP_ENV)

    if settings.APP_CHECK_ENABLED and attestation is None:
        attestation = AppCheckVerifier.from_service_account(
            settings.FIREBASE_SERVICE_ACCOUNT,
            project_id=settings.FIREBASE_PROJECT_ID,
        )
    if not settings.APP_CHECK_ENABLED:
        logger.warning("APP_CHECK_ENABLED is false; attestation tokens will NOT be verified")

    authenticator = RequestAuthenticator(
        installations,
        attestation,
        attestation_enabled=settings.APP_CHECK_ENABLED,
    )
    return authenticator, owned_client


def create_app(
    settings: Settings | None = None,
    installations: InstallationAuthorizer | None = None,
    attestation: AttestationVerifier | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the gateway app.

    *installations* and *attestation* replace the XMTP and App Check
    connectors; tests pass fakes here instead of patching modules.
    """
    settings = settings or default_settings
    if configure_logging:
        setup_logger(log_format=settings.LOG_FORMAT, log_level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL)

    if not settings.JWT_SECRET:
        logger.warning("JWT_SECRET is not set; POST /api/v1/authenticate will fail with 500")

    authenticator, owned_client = _build_authenticator(settings, installations, attestation)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application lifespan startup complete, entering serve loop")
        try:
            yield
        finally:
            if owned_client is not None:
                await owned_client.aclose()

    app = FastAPI(
        title="Convos Gateway",
        description="Authentication gateway for the Convos messaging backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.authenticator = authenticator

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthFailure)
    async def auth_failure_handler(request: Request, exc: AuthFailure) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(GateRejection)
    async def gate_rejection_handler(request: Request, exc: GateRejection) -> Response:
        return Response(status_code=exc.status_code)

    # Mount routers
    app.include_router(authenticate_router, prefix="/api/v1", tags=["auth"])
    app.include_router(session_router, prefix="/api/v1", tags=["auth"])

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/metrics", response_class=PlainTextResponse, tags=["observability"])
    async def prometheus_metrics():
        """Prometheus-compatible text exposition of in-process metrics."""
        from convos_gateway.utils.metrics import to_prometheus_text

        return to_prometheus_text()

    return app
