"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from conftest import flip_hex_byte
from xrpl_wallet_auth.api.server import create_app, set_ready
from xrpl_wallet_auth.challenge.verifier import nonce_token_message
from xrpl_wallet_auth.config import Settings
from xrpl_wallet_auth.errors import ConfigError, UpstreamError
from xrpl_wallet_auth.service import AuthService

PREFIX = "/api/auth"


@pytest.fixture
def app(service):
    return create_app(service=service)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def unconfigured_client(xumm):
    return TestClient(create_app(service=AuthService(Settings(), xumm=xumm)))


class TestHealth:
    def test_starting_then_ready(self, app, client):
        assert client.get("/health").json() == {"status": "starting"}

        set_ready(app)

        assert client.get("/health").json() == {"status": "ready"}


class TestSessionValidate:
    def test_valid_token(self, client, service, wallet):
        token = service.tokens.mint(wallet.address)

        resp = client.post(f"{PREFIX}/session/validate", json={"token": token})

        assert resp.status_code == 200
        assert resp.json() == {"address": wallet.address}

    def test_missing_token(self, client):
        resp = client.post(f"{PREFIX}/session/validate", json={})

        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_empty_body(self, client):
        resp = client.post(f"{PREFIX}/session/validate")

        assert resp.status_code == 400

    def test_invalid_token(self, client):
        resp = client.post(f"{PREFIX}/session/validate", json={"token": "not.a.token"})

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid token"}

    def test_expired_token(self, client, settings, xumm, wallet):
        token = AuthService(settings, xumm=xumm, clock=lambda: 1_000_000.0).tokens.mint(wallet.address)

        resp = client.post(f"{PREFIX}/session/validate", json={"token": token})

        assert resp.status_code == 401
        assert resp.json() == {"error": "Token expired"}

    def test_nonce_token_is_not_a_session(self, client, wallet):
        """A nonce anyone can request must not validate as a session."""
        nonce = client.get(
            f"{PREFIX}/challenge/extensionB/nonce",
            params={"publicKey": wallet.public_key, "address": "rPEPPER7kfTD9w2To4CQk6UCfuHM9c6GDY"},
        ).json()["nonceToken"]

        resp = client.post(f"{PREFIX}/session/validate", json={"token": nonce})

        assert resp.status_code == 401
        assert "address" not in resp.json()

    def test_missing_secret(self, unconfigured_client):
        resp = unconfigured_client.post(f"{PREFIX}/session/validate", json={"token": "a.b.c"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Server configuration error"}


class TestOutOfBandRoutes:
    """XUMM payload endpoints."""

    def test_create(self, client, payload):
        resp = client.get(f"{PREFIX}/challenge/outOfBand/create")

        assert resp.status_code == 200
        assert resp.json() == {
            "payloadId": payload.payload_id,
            "qrImageRef": payload.qr_image_ref,
            "deepLink": payload.deep_link,
            "channelURL": payload.channel_url,
        }

    def test_create_without_xumm_credentials(self, client, service):
        service.xumm.create_sign_in.side_effect = ConfigError("XUMM API keys not configured")

        resp = client.get(f"{PREFIX}/challenge/outOfBand/create")

        assert resp.status_code == 500
        assert resp.json() == {"error": "XUMM API keys not configured"}

    def test_status(self, client, service, payload):
        service.xumm.get_payload_raw.return_value = {"meta": {"signed": False}}

        resp = client.get(f"{PREFIX}/challenge/outOfBand/status", params={"payloadId": payload.payload_id})

        assert resp.status_code == 200
        assert resp.json() == {"payload": {"meta": {"signed": False}}}
        service.xumm.get_payload_raw.assert_called_once_with(payload.payload_id)

    def test_status_upstream_error(self, client, service, payload):
        service.xumm.get_payload_raw.side_effect = UpstreamError("Payload not found")

        resp = client.get(f"{PREFIX}/challenge/outOfBand/status", params={"payloadId": payload.payload_id})

        assert resp.status_code == 400
        assert resp.json() == {"error": "Payload not found"}

    def test_status_requires_payload_id(self, client):
        resp = client.get(f"{PREFIX}/challenge/outOfBand/status")

        assert resp.status_code == 400

    def test_verify_signed_blob(self, client, service, wallet):
        resp = client.get(
            f"{PREFIX}/challenge/outOfBand/verify", params={"signedBlobHex": wallet.signed_blob()}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["address"] == wallet.address
        assert service.validate_session(body["token"]) == wallet.address

    def test_verify_accepts_hex_alias(self, client, wallet):
        resp = client.get(f"{PREFIX}/challenge/outOfBand/verify", params={"hex": wallet.signed_blob()})

        assert resp.status_code == 200

    def test_verify_bad_blob(self, client):
        resp = client.get(f"{PREFIX}/challenge/outOfBand/verify", params={"signedBlobHex": "00FF"})

        assert resp.status_code == 400
        assert "token" not in resp.json()

    def test_verify_missing_blob(self, client):
        resp = client.get(f"{PREFIX}/challenge/outOfBand/verify")

        assert resp.status_code == 400

    def test_verify_without_secret(self, unconfigured_client, wallet):
        resp = unconfigured_client.get(
            f"{PREFIX}/challenge/outOfBand/verify", params={"signedBlobHex": wallet.signed_blob()}
        )

        assert resp.status_code == 500


class TestExtensionBRoutes:
    """GemWallet nonce endpoints."""

    def _nonce(self, client, wallet):
        resp = client.get(
            f"{PREFIX}/challenge/extensionB/nonce",
            params={"publicKey": wallet.public_key, "address": wallet.address},
        )
        assert resp.status_code == 200
        return resp.json()["nonceToken"]

    def test_nonce_then_verify(self, client, wallet):
        nonce = self._nonce(client, wallet)

        resp = client.post(
            f"{PREFIX}/challenge/extensionB/verify",
            params={"signature": wallet.sign(nonce_token_message(nonce))},
            headers={"Authorization": f"Bearer {nonce}"},
        )

        assert resp.status_code == 200
        assert resp.json()["address"] == wallet.address
        assert resp.json()["token"]

    def test_signature_in_body(self, client, wallet):
        nonce = self._nonce(client, wallet)

        resp = client.post(
            f"{PREFIX}/challenge/extensionB/verify",
            json={"signature": wallet.sign(nonce_token_message(nonce))},
            headers={"Authorization": f"Bearer {nonce}"},
        )

        assert resp.status_code == 200

    def test_nonce_accepts_pubkey_alias(self, client, wallet):
        resp = client.get(
            f"{PREFIX}/challenge/extensionB/nonce",
            params={"pubkey": wallet.public_key, "address": wallet.address},
        )

        assert resp.status_code == 200

    def test_nonce_missing_fields(self, client, wallet):
        resp = client.get(f"{PREFIX}/challenge/extensionB/nonce", params={"address": wallet.address})

        assert resp.status_code == 400

    def test_nonce_without_secret(self, unconfigured_client, wallet):
        resp = unconfigured_client.get(
            f"{PREFIX}/challenge/extensionB/nonce",
            params={"publicKey": wallet.public_key, "address": wallet.address},
        )

        assert resp.status_code == 500

    def test_verify_without_bearer(self, client, wallet):
        resp = client.post(f"{PREFIX}/challenge/extensionB/verify", params={"signature": "00"})

        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_verify_bad_signature(self, client, wallet):
        nonce = self._nonce(client, wallet)
        signature = flip_hex_byte(wallet.sign(nonce_token_message(nonce)), 3)

        resp = client.post(
            f"{PREFIX}/challenge/extensionB/verify",
            params={"signature": signature},
            headers={"Authorization": f"Bearer {nonce}"},
        )

        assert resp.status_code == 400
        assert "token" not in resp.json()

    def test_verify_forged_nonce(self, client, wallet):
        resp = client.post(
            f"{PREFIX}/challenge/extensionB/verify",
            params={"signature": "00"},
            headers={"Authorization": "Bearer not.a.token"},
        )

        assert resp.status_code == 401


class TestExtensionCRoutes:
    """Crossmark hash endpoints."""

    def test_challenge_then_verify(self, client, secp_wallet):
        challenge = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]

        resp = client.post(
            f"{PREFIX}/challenge/extensionC/verify",
            json={
                "signature": secp_wallet.sign(challenge),
                "publicKey": secp_wallet.public_key,
                "address": secp_wallet.address,
            },
            headers={"Authorization": f"Bearer {challenge}"},
        )

        assert resp.status_code == 200
        assert resp.json()["address"] == secp_wallet.address

    def test_challenge_is_fresh(self, client):
        first = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]
        second = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]

        assert first != second

    def test_verify_missing_public_key(self, client, wallet):
        challenge = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]

        resp = client.post(
            f"{PREFIX}/challenge/extensionC/verify",
            json={"signature": wallet.sign(challenge), "address": wallet.address},
            headers={"Authorization": f"Bearer {challenge}"},
        )

        assert resp.status_code == 400

    def test_verify_wrong_challenge(self, client, wallet):
        challenge = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]
        other = client.get(f"{PREFIX}/challenge/extensionC/challenge").json()["challengeHex"]

        resp = client.post(
            f"{PREFIX}/challenge/extensionC/verify",
            json={
                "signature": wallet.sign(other),
                "publicKey": wallet.public_key,
                "address": wallet.address,
            },
            headers={"Authorization": f"Bearer {challenge}"},
        )

        assert resp.status_code == 400

    def test_verify_without_bearer(self, client, wallet):
        resp = client.post(
            f"{PREFIX}/challenge/extensionC/verify",
            json={"signature": "00", "publicKey": wallet.public_key, "address": wallet.address},
        )

        assert resp.status_code == 401


class TestUnexpectedErrors:
    def test_untagged_exception_becomes_unknown_error(self, client, service):
        service.xumm.create_sign_in.side_effect = RuntimeError("boom")

        resp = client.get(f"{PREFIX}/challenge/outOfBand/create")

        assert resp.status_code == 400
        assert resp.json() == {"error": "boom"}

