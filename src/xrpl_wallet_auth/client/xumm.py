from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import Settings
from ..errors import MissingParameter, UpstreamError, UpstreamUnavailable
from ..types import PayloadChallenge, PayloadDetails

logger = logging.getLogger(__name__)

SIGN_IN_TXJSON = {"TransactionType": "SignIn"}


class XummClient:
    """Minimal client for the XUMM platform payload API."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        api_key, api_secret = self.settings.require_xumm_credentials()
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-API-Key": api_key,
            "X-API-Secret": api_secret,
        }

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = self._headers()
        url = f"{self.settings.xumm_api_url}{path}"
        try:
            resp = self._session.request(
                method, url, json=json, headers=headers, timeout=self.settings.http_timeout
            )
        except (requests.ConnectionError, requests.Timeout) as err:
            logger.error(f"XUMM request {method} {path} failed: {err}")
            raise UpstreamUnavailable(f"XUMM API unreachable: {err}") from err
        except requests.RequestException as err:
            logger.error(f"XUMM request {method} {path} failed: {err}")
            raise UpstreamError(str(err)) from err

        try:
            body = resp.json()
        except ValueError as err:
            raise UpstreamError(
                f"Invalid JSON from XUMM API: status={resp.status_code} {resp.text[:200]}"
            ) from err

        if resp.status_code >= 400 or (isinstance(body, dict) and body.get("error")):
            detail = body.get("error") if isinstance(body, dict) else None
            if isinstance(detail, dict):
                detail = detail.get("message") or detail.get("reference")
            message = str(detail or f"XUMM API error: status={resp.status_code}")
            logger.error(f"XUMM request {method} {path} rejected: {message}")
            raise UpstreamError(message)
        if not isinstance(body, dict):
            raise UpstreamError("Unexpected response from XUMM API")
        return body

    def create_sign_in(self) -> PayloadChallenge:
        """Create a SignIn payload and return the references a client needs."""
        body = self._request("POST", "/payload", json={"txjson": SIGN_IN_TXJSON})
        refs = body.get("refs") or {}
        next_ = body.get("next") or {}
        payload_id = body.get("uuid")
        channel_url = refs.get("websocket_status")
        if not payload_id or not channel_url:
            raise UpstreamError("XUMM payload response is missing uuid or websocket reference")
        return PayloadChallenge(
            payload_id=payload_id,
            deep_link=next_.get("always", ""),
            qr_image_ref=refs.get("qr_png", ""),
            channel_url=channel_url,
        )

    def get_payload_raw(self, payload_id: str) -> dict[str, Any]:
        if not payload_id:
            raise MissingParameter("payloadId is required")
        return self._request("GET", f"/payload/{payload_id}")

    def get_payload(self, payload_id: str) -> PayloadDetails:
        body = self.get_payload_raw(payload_id)
        meta = body.get("meta") or {}
        response = body.get("response") or {}
        return PayloadDetails(
            payload_id=payload_id,
            signed=bool(meta.get("signed")),
            signed_blob_hex=response.get("hex"),
            raw=body,
        )
