"""Signed bearer tokens: session credentials and GemWallet nonce tokens.

Both are HS256 JWTs signed with the process-wide session secret. Expiry is
checked against the service clock rather than PyJWT's, so the clock can be
injected.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import jwt

from ..config import Settings
from ..errors import ClaimMissing, MissingParameter, TokenExpired, TokenInvalid, TokenMalformed
from ..types import NonceTokenChallenge

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ADDRESS_CLAIM = "address"
PUBLIC_KEY_CLAIM = "public_key"
KIND_CLAIM = "typ"
SESSION_KIND = "session"
NONCE_KIND = "nonce"


def _encode(claims: dict[str, Any], secret: str) -> str:
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def _decode(token: str, secret: str, now: float, kind: str) -> dict[str, Any]:
    """Decode a token of one kind. A token minted for the other kind is invalid."""
    if not token or not isinstance(token, str):
        raise MissingParameter("Token is required")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": ["exp", KIND_CLAIM]},
        )
    except jwt.InvalidSignatureError as err:
        raise TokenInvalid() from err
    except jwt.DecodeError as err:
        raise TokenMalformed() from err
    except jwt.InvalidTokenError as err:
        raise TokenInvalid() from err

    if claims.get(KIND_CLAIM) != kind:
        raise TokenInvalid()

    try:
        expires_at = float(claims["exp"])
    except (TypeError, ValueError) as err:
        raise TokenInvalid() from err
    if now >= expires_at:
        raise TokenExpired()
    return claims


class SessionTokenService:
    """Mints and validates the 7-day session credential.

    The token carries an ``address`` claim and a ``typ`` of ``session``, so a
    GemWallet nonce never passes as a session. There is no server-side session
    store and no revocation.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time) -> None:
        self.settings = settings
        self.clock = clock

    def mint(self, address: str) -> str:
        secret = self.settings.require_session_secret()
        if not address:
            raise MissingParameter("address is required")
        now = int(self.clock())
        return _encode(
            {
                KIND_CLAIM: SESSION_KIND,
                ADDRESS_CLAIM: address,
                "iat": now,
                "exp": now + self.settings.session_ttl,
            },
            secret,
        )

    def validate(self, token: str) -> str:
        secret = self.settings.require_session_secret()
        claims = _decode(token, secret, self.clock(), SESSION_KIND)
        address = claims.get(ADDRESS_CLAIM)
        if not address or not isinstance(address, str):
            raise ClaimMissing()
        return address


class NonceTokenService:
    """Issues and opens the claims-bearing GemWallet challenge.

    The token embeds the wallet's public key and address and expires after
    ``settings.nonce_ttl`` seconds (one hour by default).
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time) -> None:
        self.settings = settings
        self.clock = clock

    def issue(self, public_key: str, address: str) -> NonceTokenChallenge:
        if not public_key or not address:
            raise MissingParameter("pubkey and address are required")
        secret = self.settings.require_session_secret()
        now = int(self.clock())
        expires_at = now + self.settings.nonce_ttl
        token = _encode(
            {
                KIND_CLAIM: NONCE_KIND,
                PUBLIC_KEY_CLAIM: public_key,
                ADDRESS_CLAIM: address,
                "iat": now,
                "exp": expires_at,
            },
            secret,
        )
        return NonceTokenChallenge(
            token=token, public_key=public_key, address=address, expires_at=expires_at
        )

    def open(self, token: str) -> NonceTokenChallenge:
        """Verify the token's signature and expiry and return its claims."""
        secret = self.settings.require_session_secret()
        claims = _decode(token, secret, self.clock(), NONCE_KIND)
        public_key = claims.get(PUBLIC_KEY_CLAIM)
        address = claims.get(ADDRESS_CLAIM)
        if not public_key or not address:
            raise ClaimMissing()
        return NonceTokenChallenge(
            token=token,
            public_key=public_key,
            address=address,
            expires_at=int(claims["exp"]),
        )
