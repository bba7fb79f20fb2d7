"""Shared fixtures: settings, ledger wallets and a scripted websocket channel."""

import asyncio
import hashlib
import json
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from nacl.signing import SigningKey
from xrpl.core.binarycodec import encode, encode_for_signing

from xrpl_wallet_auth.client.xumm import XummClient
from xrpl_wallet_auth.config import Settings
from xrpl_wallet_auth.security.ledger import SECP256K1_ORDER, derive_address
from xrpl_wallet_auth.service import AuthService
from xrpl_wallet_auth.types import PayloadChallenge, PayloadDetails

TEST_SECRET = "test-session-secret-0123456789abcdef"


class Wallet:
    """A ledger keypair that can sign hex messages the way wallets do."""

    def __init__(self, algorithm: str = "ed25519"):
        self.algorithm = algorithm
        if algorithm == "ed25519":
            self._key = SigningKey.generate()
            self.public_key = "ED" + self._key.verify_key.encode().hex().upper()
        else:
            self._key = ec.generate_private_key(ec.SECP256K1())
            self.public_key = (
                self._key.public_key()
                .public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
                .hex()
                .upper()
            )
        self.address = derive_address(self.public_key)

    def sign(self, message_hex: str) -> str:
        message = bytes.fromhex(message_hex)
        if self.algorithm == "ed25519":
            return self._key.sign(message).signature.hex().upper()
        digest = hashlib.sha512(message).digest()[:32]
        der = self._key.sign(digest, ec.ECDSA(utils.Prehashed(hashes.SHA256())))
        r, s = utils.decode_dss_signature(der)
        # Ledger wallets emit the low-S form only
        if s > SECP256K1_ORDER // 2:
            s = SECP256K1_ORDER - s
        return utils.encode_dss_signature(r, s).hex().upper()

    def signed_blob(self, account: str | None = None) -> str:
        """A signed AccountSet transaction, as the XUMM app returns it."""
        tx = {
            "TransactionType": "AccountSet",
            "Account": account or self.address,
            "Fee": "12",
            "Sequence": 1,
            "Flags": 0,
            "SigningPubKey": self.public_key,
        }
        tx["TxnSignature"] = self.sign(encode_for_signing(tx))
        return encode(tx)


def flip_hex_byte(value: str, index: int = 0) -> str:
    """Flip the low bit of one byte of a hex string."""
    raw = bytearray(bytes.fromhex(value))
    raw[index] ^= 0x01
    return raw.hex().upper()


_CLOSE = object()


class FakeChannel:
    """Stands in for a websocket connection.

    Yields the scripted frames, then either ends (remote close), raises
    ``error`` or, with ``hold_open``, waits until closed.
    """

    def __init__(self, frames=(), hold_open=False, error=None):
        self._queue = asyncio.Queue()
        for frame in frames:
            self._queue.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))
        self.hold_open = hold_open
        self.error = error
        self.closed = False
        self.close_calls = 0

    def push(self, frame):
        self._queue.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.closed:
            raise StopAsyncIteration
        if self._queue.empty() and not self.hold_open:
            if self.error is not None:
                raise self.error
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item

    async def close(self):
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSE)


class FakeConnector:
    """Records the URLs opened and hands out FakeChannels."""

    def __init__(self, *channels):
        self.channels = list(channels)
        self.urls = []

    async def __call__(self, url):
        self.urls.append(url)
        return self.channels.pop(0)


@pytest.fixture
def settings():
    return Settings(
        session_secret=TEST_SECRET,
        xumm_api_key="xumm-key",
        xumm_api_secret="xumm-secret",
    )


@pytest.fixture
def wallet():
    return Wallet("ed25519")


@pytest.fixture
def secp_wallet():
    return Wallet("secp256k1")


@pytest.fixture
def payload():
    return PayloadChallenge(
        payload_id="6a4f5c9e-0000-4000-8000-000000000001",
        deep_link="https://xumm.app/sign/6a4f5c9e-0000-4000-8000-000000000001",
        qr_image_ref="https://xumm.app/sign/6a4f5c9e-0000-4000-8000-000000000001_q.png",
        channel_url="wss://xumm.app/sign/6a4f5c9e-0000-4000-8000-000000000001",
    )


@pytest.fixture
def xumm(payload):
    client = MagicMock(spec=XummClient)
    client.create_sign_in.return_value = payload
    return client


@pytest.fixture
def service(settings, xumm):
    return AuthService(settings, xumm=xumm)


def payload_details(payload_id, blob_hex):
    return PayloadDetails(
        payload_id=payload_id,
        signed=True,
        signed_blob_hex=blob_hex,
        raw={"meta": {"signed": True}, "response": {"hex": blob_hex}},
    )
