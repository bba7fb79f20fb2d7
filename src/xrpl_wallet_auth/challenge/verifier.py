"""Per-provider signature verification.

Message framing differs by provider and must stay exactly as is:

- XUMM: the message is the signed transaction blob itself; validity and
  signer come from the blob, never from client input.
- GEM: the message is hex(utf-8 bytes of the whole nonce token), verified
  with the public key embedded in the token.
- CROSSMARK: the message is the raw hex challenge; public key and address
  are whatever the client submitted.
"""

from __future__ import annotations

import logging

from ..config import Settings
from ..errors import MissingParameter, SignatureInvalid, ValidationError
from ..security.ledger import derive_address, verify_message, verify_signed_transaction
from ..security.tokens import NonceTokenService
from ..types import Provider

logger = logging.getLogger(__name__)


def nonce_token_message(token: str) -> str:
    return token.encode("utf-8").hex()


class SignatureVerifier:
    def __init__(self, settings: Settings, nonces: NonceTokenService | None = None) -> None:
        self.settings = settings
        self.nonces = nonces or NonceTokenService(settings)

    def verify(
        self,
        provider: Provider,
        challenge: str | None,
        signature: str | None,
        public_key: str | None = None,
        address: str | None = None,
    ) -> str:
        """Verify a signature and return the one address it proves control of."""
        if provider is Provider.XUMM:
            return self.verify_signed_blob(signature)
        if provider is Provider.GEM:
            return self.verify_nonce_token(challenge, signature)
        if provider is Provider.CROSSMARK:
            return self.verify_hash(challenge, signature, public_key, address)
        raise ValidationError(f"Unsupported provider: {provider}")

    def verify_signed_blob(self, blob_hex: str | None) -> str:
        if not blob_hex:
            raise MissingParameter("hex parameter is required")
        try:
            result = verify_signed_transaction(blob_hex)
        except ValueError as err:
            logger.warning(f"XUMM blob rejected: {err}")
            raise SignatureInvalid("Could not decode signed transaction") from err

        if result.signature_valid is not True:
            logger.warning("XUMM blob rejected: invalid signature")
            raise SignatureInvalid("Invalid signature")
        if not result.signed_by:
            raise SignatureInvalid("Could not extract address from signature")
        return result.signed_by

    def verify_nonce_token(self, token: str | None, signature: str | None) -> str:
        if not token:
            raise MissingParameter("nonce token is required")
        claims = self.nonces.open(token)
        if not signature:
            raise MissingParameter("signature parameter is required")

        if not verify_message(nonce_token_message(token), signature, claims.public_key):
            logger.warning(f"GEM signature rejected for {claims.address}")
            raise SignatureInvalid()
        return claims.address

    def verify_hash(
        self,
        challenge_hex: str | None,
        signature: str | None,
        public_key: str | None,
        address: str | None,
    ) -> str:
        if not challenge_hex:
            raise MissingParameter("challenge is required")
        if not signature:
            raise MissingParameter("signature parameter is required")
        if not public_key or not address:
            raise MissingParameter("pubkey and address are required in request body")

        if not verify_message(challenge_hex, signature, public_key):
            logger.warning(f"Crossmark signature rejected for {address}")
            raise SignatureInvalid()

        try:
            derived = derive_address(public_key)
        except ValueError:
            derived = None
        if derived != address:
            # Regular keys sign for a different account, so this is not rejected.
            logger.info(f"Crossmark address {address} is not derived from its signing key")
        return address
