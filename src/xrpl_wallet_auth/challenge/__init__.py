from .hooks import FlowHooks
from .issuer import ChallengeIssuer, generate_secure_random_hash
from .verifier import SignatureVerifier, nonce_token_message

__all__ = [
    "ChallengeIssuer",
    "FlowHooks",
    "SignatureVerifier",
    "generate_secure_random_hash",
    "nonce_token_message",
]
