from __future__ import annotations

import hashlib
import logging
import secrets

from ..client.xumm import XummClient
from ..config import Settings
from ..errors import MissingParameter, ValidationError
from ..security.tokens import NonceTokenService
from ..types import (
    Challenge,
    HashChallenge,
    NonceTokenChallenge,
    PayloadChallenge,
    Provider,
    WalletAccountClaim,
)

logger = logging.getLogger(__name__)

RANDOM_BYTES = 16


def generate_secure_random_hash() -> str:
    """SHA-256 hex digest of 16 bytes from the OS CSPRNG."""
    return hashlib.sha256(secrets.token_bytes(RANDOM_BYTES)).hexdigest()


class ChallengeIssuer:
    """Produces a fresh challenge per authentication attempt.

    Challenges are not recorded anywhere, so nothing stops one from being
    verified more than once while it is valid.
    """

    def __init__(
        self,
        settings: Settings,
        xumm: XummClient | None = None,
        nonces: NonceTokenService | None = None,
    ) -> None:
        self.settings = settings
        self.xumm = xumm or XummClient(settings)
        self.nonces = nonces or NonceTokenService(settings)

    def issue(self, provider: Provider, claim: WalletAccountClaim | None = None) -> Challenge:
        if provider is Provider.XUMM:
            return self.create_payload()
        if provider is Provider.GEM:
            if claim is None:
                raise MissingParameter("pubkey and address are required")
            return self.issue_nonce(claim.public_key, claim.address)
        if provider is Provider.CROSSMARK:
            return self.issue_hash()
        raise ValidationError(f"Unsupported provider: {provider}")

    def create_payload(self) -> PayloadChallenge:
        payload = self.xumm.create_sign_in()
        logger.info(f"Created XUMM sign-in payload {payload.payload_id}")
        return payload

    def issue_nonce(self, public_key: str, address: str) -> NonceTokenChallenge:
        return self.nonces.issue(public_key, address)

    def issue_hash(self) -> HashChallenge:
        return HashChallenge(value=generate_secure_random_hash())
