"""Signature and token primitives for wallet authentication."""

from .ledger import SignedTransaction, derive_address, verify_message, verify_signed_transaction
from .tokens import NonceTokenService, SessionTokenService

__all__ = [
    "NonceTokenService",
    "SessionTokenService",
    "SignedTransaction",
    "derive_address",
    "verify_message",
    "verify_signed_transaction",
]
