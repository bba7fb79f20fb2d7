"""XRP Ledger signature scheme.

Public keys are 33 bytes. A leading 0xED byte marks an Ed25519 key, which
signs the raw message bytes. Anything else is a compressed secp256k1 point,
which signs SHA-512Half(message) with a DER-encoded ECDSA signature.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey
from xrpl.core.binarycodec import decode, encode_for_signing
from xrpl.core.keypairs import XRPLKeypairsException, derive_classic_address

logger = logging.getLogger(__name__)

ED25519_PREFIX = 0xED
PUBLIC_KEY_LENGTH = 33
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def sha512_half(data: bytes) -> bytes:
    return hashlib.sha512(data).digest()[:32]


def _unhex(value: str) -> bytes:
    return bytes.fromhex(value.strip())


def verify_message(message_hex: str, signature_hex: str, public_key_hex: str) -> bool:
    """Check a ledger signature over hex-encoded message bytes.

    Malformed input of any kind counts as an invalid signature.
    """
    try:
        message = _unhex(message_hex)
        signature = _unhex(signature_hex)
        public_key = _unhex(public_key_hex)
    except (ValueError, AttributeError):
        return False

    if len(public_key) != PUBLIC_KEY_LENGTH:
        return False

    if public_key[0] == ED25519_PREFIX:
        try:
            VerifyKey(public_key[1:]).verify(message, signature)
        except (BadSignatureError, ValueError, TypeError):
            return False
        return True

    try:
        _, s = utils.decode_dss_signature(signature)
    except ValueError:
        return False
    # Canonical signatures only: a high-S twin of a valid signature is rejected
    if s > SECP256K1_ORDER // 2:
        return False

    try:
        point = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
        # SHA-512Half is 32 bytes, the same digest size Prehashed(SHA256) expects
        point.verify(signature, sha512_half(message), ec.ECDSA(utils.Prehashed(hashes.SHA256())))
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def derive_address(public_key_hex: str) -> str:
    """Classic r-address for a public key."""
    try:
        return derive_classic_address(public_key_hex.upper())
    except (XRPLKeypairsException, ValueError) as err:
        raise ValueError(f"invalid public key: {public_key_hex}") from err


@dataclass(frozen=True)
class SignedTransaction:
    signature_valid: bool
    signed_by: str | None
    account: str | None = None
    transaction_type: str | None = None


def verify_signed_transaction(blob_hex: str) -> SignedTransaction:
    """Verify a signed transaction blob and report who signed it.

    The signer is derived from the blob's SigningPubKey, never from the
    Account field. Raises ValueError when the blob cannot be decoded.
    """
    try:
        tx = decode(blob_hex.strip().upper())
    # the codec reports truncated or unknown fields with assorted exception types
    except Exception as err:
        raise ValueError("could not decode signed transaction") from err

    signing_pub_key = tx.get("SigningPubKey") or ""
    txn_signature = tx.get("TxnSignature") or ""
    if not signing_pub_key or not txn_signature:
        logger.debug("Transaction blob carries no single signature (multi-signed or unsigned)")
        return SignedTransaction(
            signature_valid=False,
            signed_by=None,
            account=tx.get("Account"),
            transaction_type=tx.get("TransactionType"),
        )

    signing_data = encode_for_signing(tx)
    valid = verify_message(signing_data, txn_signature, signing_pub_key)
    signed_by = derive_address(signing_pub_key) if valid else None
    return SignedTransaction(
        signature_valid=valid,
        signed_by=signed_by,
        account=tx.get("Account"),
        transaction_type=tx.get("TransactionType"),
    )
