from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from ..errors import UpstreamError, UpstreamUnavailable, error_from_status
from ..types import HashChallenge, NonceTokenChallenge, PayloadChallenge, Provider, SessionGrant

logger = logging.getLogger(__name__)

API_PREFIX = "/api/auth"


class AuthHttpClient:
    """Talks to a remote wallet-auth server over its HTTP API.

    Implements the same backend interface as LocalBackend, so an AuthFlow can
    run against either.
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _call(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        bearer: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{API_PREFIX}{path}"
        headers = {"Content-Type": "application/json"}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        try:
            resp = self._session.request(
                method, url, params=params, json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as err:
            raise UpstreamUnavailable(f"Auth server unreachable: {err}") from err

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400 or body.get("error"):
            raise error_from_status(resp.status_code, body.get("error"))
        return body

    def _grant(self, body: dict[str, Any], provider: Provider) -> SessionGrant:
        if not body.get("token") or not body.get("address"):
            raise UpstreamError("Invalid response from auth server")
        return SessionGrant(address=body["address"], token=body["token"], provider=provider)

    # Blocking calls

    def validate_session_sync(self, token: str) -> str:
        body = self._call("POST", "/session/validate", json={"token": token})
        return body["address"]

    def create_payload_sync(self) -> PayloadChallenge:
        body = self._call("GET", "/challenge/outOfBand/create")
        return PayloadChallenge(
            payload_id=body["payloadId"],
            deep_link=body.get("deepLink", ""),
            qr_image_ref=body.get("qrImageRef", ""),
            channel_url=body["channelURL"],
        )

    def get_payload_sync(self, payload_id: str) -> dict[str, Any]:
        body = self._call("GET", "/challenge/outOfBand/status", params={"payloadId": payload_id})
        return body.get("payload") or {}

    def verify_payload_sync(self, blob_hex: str) -> SessionGrant:
        body = self._call("GET", "/challenge/outOfBand/verify", params={"signedBlobHex": blob_hex})
        return self._grant(body, Provider.XUMM)

    def resolve_payload_sync(self, payload_id: str) -> SessionGrant:
        payload = self.get_payload_sync(payload_id)
        blob_hex = (payload.get("response") or {}).get("hex")
        if not blob_hex:
            raise UpstreamError(f"Payload {payload_id} has no signed transaction")
        return self.verify_payload_sync(blob_hex)

    def issue_nonce_sync(self, public_key: str, address: str) -> NonceTokenChallenge:
        body = self._call(
            "GET", "/challenge/extensionB/nonce", params={"publicKey": public_key, "address": address}
        )
        return NonceTokenChallenge(
            token=body["nonceToken"], public_key=public_key, address=address, expires_at=0
        )

    def verify_nonce_sync(self, nonce_token: str, signature: str) -> SessionGrant:
        body = self._call(
            "POST",
            "/challenge/extensionB/verify",
            params={"signature": signature},
            bearer=nonce_token,
        )
        return self._grant(body, Provider.GEM)

    def issue_hash_sync(self) -> HashChallenge:
        body = self._call("GET", "/challenge/extensionC/challenge")
        return HashChallenge(value=body["challengeHex"])

    def verify_hash_sync(
        self, challenge_hex: str, signature: str, public_key: str, address: str
    ) -> SessionGrant:
        body = self._call(
            "POST",
            "/challenge/extensionC/verify",
            params={"signature": signature},
            json={"publicKey": public_key, "address": address},
            bearer=challenge_hex,
        )
        return self._grant(body, Provider.CROSSMARK)

    # AuthBackend interface

    async def validate_session(self, token: str) -> str:
        return await asyncio.to_thread(self.validate_session_sync, token)

    async def create_payload(self) -> PayloadChallenge:
        return await asyncio.to_thread(self.create_payload_sync)

    async def resolve_payload(self, payload_id: str) -> SessionGrant:
        return await asyncio.to_thread(self.resolve_payload_sync, payload_id)

    async def issue_nonce(self, public_key: str, address: str) -> NonceTokenChallenge:
        return await asyncio.to_thread(self.issue_nonce_sync, public_key, address)

    async def verify_nonce(self, nonce_token: str, signature: str) -> SessionGrant:
        return await asyncio.to_thread(self.verify_nonce_sync, nonce_token, signature)

    async def issue_hash(self) -> HashChallenge:
        return await asyncio.to_thread(self.issue_hash_sync)

    async def verify_hash(
        self, challenge_hex: str, signature: str, public_key: str, address: str
    ) -> SessionGrant:
        return await asyncio.to_thread(
            self.verify_hash_sync, challenge_hex, signature, public_key, address
        )
