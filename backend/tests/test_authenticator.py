"""Tests for the request authenticator: check order, short-circuiting, failure mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from convos_gateway.auth.authenticator import RequestAuthenticator, VerifiedInstallation
from convos_gateway.auth.failures import (
    InstallationValidationFailed,
    InvalidAttestation,
    InvalidInstallationId,
    InvalidSignature,
    MissingHeaders,
)
from convos_gateway.connectors.xmtp_client import XmtpApiError
from convos_gateway.utils.metrics import metrics

from helpers import APP_CHECK_TOKEN, INBOX_ID, installation_id_hex, signed_headers


@pytest.fixture
def authenticator(installations, attestation) -> RequestAuthenticator:
    return RequestAuthenticator(installations, attestation)


class TestSuccess:
    @pytest.mark.asyncio
    async def test_returns_verified_identity(self, authenticator, headers, installation_key):
        verified = await authenticator.authenticate(headers)
        assert verified == VerifiedInstallation(
            inbox_id=INBOX_ID,
            installation_id=installation_id_hex(installation_key),
        )

    @pytest.mark.asyncio
    async def test_oracles_receive_decoded_values(
        self, authenticator, headers, installation_key, installations, attestation
    ):
        await authenticator.authenticate(headers)
        installations.is_installation_authorized.assert_awaited_once_with(
            INBOX_ID, bytes.fromhex(installation_id_hex(installation_key))
        )
        attestation.verify.assert_awaited_once_with(APP_CHECK_TOKEN)

    @pytest.mark.asyncio
    async def test_records_success_metric(self, authenticator, headers):
        await authenticator.authenticate(headers, surface="token")
        assert metrics.get_counter("auth_attempts_total", {"surface": "token", "outcome": "success"}) == 1
        assert metrics.get_counter("oracle_calls_total", {"oracle": "xmtp", "result": "authorized"}) == 1
        assert metrics.get_counter("oracle_calls_total", {"oracle": "app_check", "result": "verified"}) == 1
        assert metrics.get_histogram_stats("auth_duration_seconds", {"surface": "token"})["count"] == 1


class TestShortCircuit:
    @pytest.mark.asyncio
    async def test_missing_headers_makes_no_oracle_calls(self, authenticator, headers, installations, attestation):
        del headers["X-XMTP-InboxId"]
        with pytest.raises(MissingHeaders):
            await authenticator.authenticate(headers)
        installations.is_installation_authorized.assert_not_awaited()
        attestation.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_installation_id_makes_no_oracle_calls(self, authenticator, headers, installations):
        headers["X-XMTP-InstallationId"] = "not-hex"
        with pytest.raises(InvalidInstallationId):
            await authenticator.authenticate(headers)
        installations.is_installation_authorized.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unauthorized_installation_skips_signature(self, authenticator, headers, installations, attestation):
        installations.is_installation_authorized.return_value = False
        with patch("convos_gateway.auth.authenticator.verify_installation_signature") as verify_sig:
            with pytest.raises(InvalidInstallationId):
                await authenticator.authenticate(headers)
        verify_sig.assert_not_called()
        attestation.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_signature_skips_attestation(self, authenticator, installation_key, attestation):
        headers = signed_headers(installation_key)
        headers["X-XMTP-Signature"] = installation_key.sign(b"invalid-signature").hex()
        with pytest.raises(InvalidSignature):
            await authenticator.authenticate(headers)
        attestation.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signature_from_other_message_is_rejected(self, authenticator, installation_key):
        headers = signed_headers(installation_key, token="some-other-token")
        headers["X-Firebase-AppCheck"] = APP_CHECK_TOKEN
        with pytest.raises(InvalidSignature):
            await authenticator.authenticate(headers)


class TestOracleFailures:
    @pytest.mark.asyncio
    async def test_installation_oracle_error(self, authenticator, headers, installations, attestation):
        installations.is_installation_authorized.side_effect = XmtpApiError("XMTP identity API returned HTTP 503")
        with pytest.raises(InstallationValidationFailed) as excinfo:
            await authenticator.authenticate(headers)
        assert excinfo.value.details == "XMTP identity API returned HTTP 503"
        assert excinfo.value.gate_status_code == 500
        attestation.verify.assert_not_awaited()
        assert metrics.get_counter("oracle_calls_total", {"oracle": "xmtp", "result": "error"}) == 1

    @pytest.mark.asyncio
    async def test_attestation_rejected(self, authenticator, headers, attestation):
        attestation.verify.side_effect = ValueError("token expired")
        with pytest.raises(InvalidAttestation) as excinfo:
            await authenticator.authenticate(headers, surface="gate")
        assert excinfo.value.status_code == 401
        assert metrics.get_counter(
            "auth_attempts_total", {"surface": "gate", "outcome": "invalid_attestation"}
        ) == 1


class TestAttestationToggle:
    @pytest.mark.asyncio
    async def test_disabled_attestation_is_skipped(self, installations, headers):
        attestation = AsyncMock()
        authenticator = RequestAuthenticator(installations, attestation, attestation_enabled=False)
        await authenticator.authenticate(headers)
        attestation.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disabled_attestation_still_checks_signature(self, installations, installation_key):
        authenticator = RequestAuthenticator(installations, None, attestation_enabled=False)
        headers = signed_headers(installation_key)
        headers["X-XMTP-Signature"] = "00" * 64
        with pytest.raises(InvalidSignature):
            await authenticator.authenticate(headers)

    def test_enabled_without_verifier_is_rejected(self, installations):
        with pytest.raises(ValueError):
            RequestAuthenticator(installations, None, attestation_enabled=True)
