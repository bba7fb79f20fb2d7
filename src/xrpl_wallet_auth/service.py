"""Server-side authentication operations, one per HTTP endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from .challenge.issuer import ChallengeIssuer
from .challenge.verifier import SignatureVerifier
from .client.xumm import XummClient
from .config import Settings
from .errors import MissingParameter, UpstreamError, Unauthorized
from .security.tokens import NonceTokenService, SessionTokenService
from .types import (
    HashChallenge,
    NonceTokenChallenge,
    PayloadChallenge,
    PayloadDetails,
    Provider,
    SessionGrant,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Wires the issuer, verifier and session tokens to one Settings object."""

    def __init__(
        self,
        settings: Settings,
        xumm: XummClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.xumm = xumm or XummClient(settings)
        self.tokens = SessionTokenService(settings, clock)
        self.nonces = NonceTokenService(settings, clock)
        self.issuer = ChallengeIssuer(settings, self.xumm, self.nonces)
        self.verifier = SignatureVerifier(settings, self.nonces)

    def _grant(self, address: str, provider: Provider) -> SessionGrant:
        token = self.tokens.mint(address)
        logger.info(f"Authenticated {address} via {provider.value}")
        return SessionGrant(address=address, token=token, provider=provider)

    def validate_session(self, token: str | None) -> str:
        if not token:
            raise MissingParameter("Token is required")
        return self.tokens.validate(token)

    # XUMM

    def create_payload(self) -> PayloadChallenge:
        return self.issuer.create_payload()

    def get_payload(self, payload_id: str | None) -> dict[str, Any]:
        if not payload_id:
            raise MissingParameter("payloadId is required")
        return self.xumm.get_payload_raw(payload_id)

    def get_payload_details(self, payload_id: str) -> PayloadDetails:
        if not payload_id:
            raise MissingParameter("payloadId is required")
        return self.xumm.get_payload(payload_id)

    def verify_payload(self, blob_hex: str | None) -> SessionGrant:
        if not blob_hex:
            raise MissingParameter("hex parameter is required")
        self.settings.require_session_secret()
        address = self.verifier.verify_signed_blob(blob_hex)
        return self._grant(address, Provider.XUMM)

    def resolve_payload(self, payload_id: str) -> SessionGrant:
        """Fetch a signed payload and turn its blob into a session."""
        details = self.get_payload_details(payload_id)
        if not details.signed_blob_hex:
            raise UpstreamError(f"Payload {payload_id} has no signed transaction")
        return self.verify_payload(details.signed_blob_hex)

    # GemWallet

    def issue_nonce(self, public_key: str | None, address: str | None) -> NonceTokenChallenge:
        if not public_key or not address:
            raise MissingParameter("pubkey and address are required")
        return self.issuer.issue_nonce(public_key, address)

    def verify_nonce(self, nonce_token: str | None, signature: str | None) -> SessionGrant:
        if not nonce_token:
            raise Unauthorized()
        self.settings.require_session_secret()
        address = self.verifier.verify_nonce_token(nonce_token, signature)
        return self._grant(address, Provider.GEM)

    # Crossmark

    def issue_hash(self) -> HashChallenge:
        return self.issuer.issue_hash()

    def verify_hash(
        self,
        challenge_hex: str | None,
        signature: str | None,
        public_key: str | None,
        address: str | None,
    ) -> SessionGrant:
        if not challenge_hex:
            raise Unauthorized()
        if not signature:
            raise MissingParameter("signature parameter is required")
        if not public_key or not address:
            raise MissingParameter("pubkey and address are required in request body")
        self.settings.require_session_secret()
        verified = self.verifier.verify_hash(challenge_hex, signature, public_key, address)
        return self._grant(verified, Provider.CROSSMARK)
