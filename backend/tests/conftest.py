"""Shared fixtures for backend tests."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from httpx import ASGITransport, AsyncClient

from convos_gateway.config import Settings
from convos_gateway.main import create_app
from convos_gateway.utils.metrics import metrics

from helpers import TEST_JWT_SECRET, signed_headers


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def installation_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture
def headers(installation_key) -> dict[str, str]:
    return signed_headers(installation_key)


@pytest.fixture
def installations() -> AsyncMock:
    """Installation-authorization oracle that authorizes everything."""
    oracle = AsyncMock()
    oracle.is_installation_authorized.return_value = True
    return oracle


@pytest.fixture
def attestation() -> AsyncMock:
    """App Check oracle that accepts every token."""
    oracle = AsyncMock()
    oracle.verify.return_value = {"sub": "1:1234567890:ios:abcdef", "app_id": "1:1234567890:ios:abcdef"}
    return oracle


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        JWT_SECRET=TEST_JWT_SECRET,
        APP_CHECK_ENABLED=True,
        XMTP_ENV="local",
    )


@pytest.fixture
def app(settings, installations, attestation):
    return create_app(
        settings=settings,
        installations=installations,
        attestation=attestation,
        configure_logging=False,
    )


@pytest.fixture
async def client(app):
    """Create an async test client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
