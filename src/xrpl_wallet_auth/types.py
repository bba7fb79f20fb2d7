"""Type definitions for wallet authentication."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union


class Provider(str, enum.Enum):
    """Wallet signing backends.

    XUMM signs out-of-band in the Xaman mobile app and reports completion over
    a websocket. GEM and CROSSMARK are browser extensions that sign
    synchronously.
    """

    XUMM = "xumm"
    GEM = "gem"
    CROSSMARK = "crossmark"

    @property
    def out_of_band(self) -> bool:
        return self is Provider.XUMM


@dataclass(frozen=True)
class WalletAccountClaim:
    public_key: str
    address: str
    provider: Provider


@dataclass(frozen=True)
class HashChallenge:
    """Random 256-bit challenge (Crossmark). Carries no claims."""

    value: str
    provider: Provider = Provider.CROSSMARK


@dataclass(frozen=True)
class NonceTokenChallenge:
    """Claims-bearing nonce token (GemWallet), expires after one hour."""

    token: str
    public_key: str
    address: str
    expires_at: int
    provider: Provider = Provider.GEM


@dataclass(frozen=True)
class PayloadChallenge:
    """Sign-in payload created by the XUMM platform."""

    payload_id: str
    deep_link: str
    qr_image_ref: str
    channel_url: str
    provider: Provider = Provider.XUMM

    def to_dict(self) -> dict[str, str]:
        return {
            "payloadId": self.payload_id,
            "qrImageRef": self.qr_image_ref,
            "deepLink": self.deep_link,
            "channelURL": self.channel_url,
        }


Challenge = Union[HashChallenge, NonceTokenChallenge, PayloadChallenge]


class PayloadState(str, enum.Enum):
    CREATED = "created"
    PENDING = "pending"
    SIGNED = "signed"
    EXPIRED = "expired"


@dataclass
class PayloadStatus:
    id: str
    channel_url: str
    state: PayloadState = PayloadState.CREATED


@dataclass(frozen=True)
class SessionGrant:
    """Outcome of a successful verification: the verified address and its session token."""

    address: str
    token: str
    provider: Provider | None = None

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "token": self.token}


@dataclass
class PayloadDetails:
    """Subset of the XUMM payload record the watcher needs."""

    payload_id: str
    signed: bool
    signed_blob_hex: str | None
    raw: dict[str, Any] = field(default_factory=dict)


class FlowState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_SIGNATURE = "awaiting_signature"
    VERIFYING = "verifying"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (FlowState.AUTHENTICATED, FlowState.FAILED)


@dataclass(frozen=True)
class FlowFailure:
    """Why an attempt ended in FAILED: the error category and a display message."""

    category: str
    message: str
