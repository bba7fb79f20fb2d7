"""Per-attempt authentication state machine.

    IDLE -> REQUESTING -> AWAITING_SIGNATURE -> VERIFYING -> AUTHENTICATED

Any error on the way lands in FAILED with the error's category attached.

``disconnect()`` returns to IDLE from any state, closing the XUMM channel and
dropping any held credential. Every attempt starts from a fresh challenge;
nothing is retried automatically.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from .challenge.hooks import FlowHooks
from .errors import AuthFlowError, MissingParameter, ValidationError
from .service import AuthService
from .types import (
    Challenge,
    FlowFailure,
    FlowState,
    HashChallenge,
    NonceTokenChallenge,
    PayloadChallenge,
    Provider,
    SessionGrant,
    WalletAccountClaim,
)
from .websocket import CompletionWatcher, Connector, WatchResult

logger = logging.getLogger(__name__)


class AuthBackend(Protocol):
    async def create_payload(self) -> PayloadChallenge: ...

    async def resolve_payload(self, payload_id: str) -> SessionGrant: ...

    async def issue_nonce(self, public_key: str, address: str) -> NonceTokenChallenge: ...

    async def verify_nonce(self, nonce_token: str, signature: str) -> SessionGrant: ...

    async def issue_hash(self) -> HashChallenge: ...

    async def verify_hash(
        self, challenge_hex: str, signature: str, public_key: str, address: str
    ) -> SessionGrant: ...

    async def validate_session(self, token: str) -> str: ...


class LocalBackend:
    """Runs the flow against an in-process AuthService.

    XUMM calls block on HTTP, so they run in a worker thread.
    """

    def __init__(self, service: AuthService) -> None:
        self.service = service

    async def create_payload(self) -> PayloadChallenge:
        return await asyncio.to_thread(self.service.create_payload)

    async def resolve_payload(self, payload_id: str) -> SessionGrant:
        return await asyncio.to_thread(self.service.resolve_payload, payload_id)

    async def issue_nonce(self, public_key: str, address: str) -> NonceTokenChallenge:
        return self.service.issue_nonce(public_key, address)

    async def verify_nonce(self, nonce_token: str, signature: str) -> SessionGrant:
        return self.service.verify_nonce(nonce_token, signature)

    async def issue_hash(self) -> HashChallenge:
        return self.service.issue_hash()

    async def verify_hash(
        self, challenge_hex: str, signature: str, public_key: str, address: str
    ) -> SessionGrant:
        return self.service.verify_hash(challenge_hex, signature, public_key, address)

    async def validate_session(self, token: str) -> str:
        return self.service.validate_session(token)


class AuthFlow:
    """One wallet connection, driven through the authentication states.

    Operations never raise authentication errors; they land the flow in
    FAILED and record a FlowFailure instead. Calling an operation in a state
    that does not accept it raises ValidationError.
    """

    def __init__(
        self,
        backend: AuthBackend,
        hooks: FlowHooks | None = None,
        remember: bool = True,
        connect: Connector | None = None,
    ) -> None:
        self.backend = backend
        self.hooks = hooks or FlowHooks()
        self.remember = remember
        self._connect = connect
        self.state = FlowState.IDLE
        self.provider: Provider | None = None
        self.challenge: Challenge | None = None
        self.claim: WalletAccountClaim | None = None
        self.address: str | None = None
        self.token: str | None = None
        self.failure: FlowFailure | None = None
        self.restored = False
        self.watcher: CompletionWatcher | None = None
        self._watch_task: asyncio.Task | None = None
        self._attempt = 0

    @property
    def is_loading(self) -> bool:
        return self.state in (
            FlowState.REQUESTING,
            FlowState.AWAITING_SIGNATURE,
            FlowState.VERIFYING,
        )

    @property
    def channel_open(self) -> bool:
        return self.watcher is not None and not self.watcher.closed

    def snapshot(self) -> dict[str, Any]:
        payload = self.challenge if isinstance(self.challenge, PayloadChallenge) else None
        return {
            "state": self.state.value,
            "provider": self.provider.value if self.provider else None,
            "address": self.address,
            "isLoading": self.is_loading,
            "error": self.failure.message if self.failure else None,
            "qrImageRef": payload.qr_image_ref if payload else "",
            "deepLink": payload.deep_link if payload else "",
            "isRetrieved": self.restored,
        }

    async def _transition(self, new: FlowState) -> None:
        old = self.state
        if old is new:
            return
        self.state = new
        logger.debug(f"Auth flow {old.value} -> {new.value}")
        await self.hooks.state_changed(old, new)

    async def _fail(self, err: AuthFlowError) -> None:
        self.failure = FlowFailure(category=err.category, message=err.message)
        logger.warning(f"Authentication failed ({err.category}): {err.message}")
        await self._transition(FlowState.FAILED)
        await self.hooks.failed(self.failure)

    async def _authenticate(self, grant: SessionGrant) -> None:
        if self.state is FlowState.AUTHENTICATED:
            return
        self.address = grant.address
        self.token = grant.token if self.remember else None
        await self._transition(FlowState.AUTHENTICATED)
        await self.hooks.authenticated(grant)

    async def _close_watcher(self) -> None:
        watcher, self.watcher = self.watcher, None
        self._watch_task = None
        if watcher is not None:
            await watcher.cancel()

    def _reset(self) -> int:
        self._attempt += 1
        self.provider = None
        self.challenge = None
        self.claim = None
        self.address = None
        self.token = None
        self.failure = None
        self.restored = False
        return self._attempt

    async def request(
        self, provider: Provider, claim: WalletAccountClaim | None = None
    ) -> Challenge | None:
        """Start a new attempt and fetch its challenge.

        For XUMM the completion channel is opened immediately. For GEM and
        CROSSMARK the caller signs the returned challenge and hands the
        signature to submit_signature().
        """
        attempt = self._reset()
        await self._close_watcher()
        self.provider = provider
        self.claim = claim
        await self._transition(FlowState.REQUESTING)

        try:
            if provider is Provider.XUMM:
                challenge: Challenge = await self.backend.create_payload()
            elif provider is Provider.GEM:
                if claim is None:
                    raise MissingParameter("Failed to get public key from GEM wallet")
                challenge = await self.backend.issue_nonce(claim.public_key, claim.address)
            elif provider is Provider.CROSSMARK:
                challenge = await self.backend.issue_hash()
            else:
                raise ValidationError(f"Unsupported provider: {provider}")
        except AuthFlowError as err:
            if attempt == self._attempt:
                await self._fail(err)
            return None

        if attempt != self._attempt:
            return None
        self.challenge = challenge
        await self._transition(FlowState.AWAITING_SIGNATURE)

        if isinstance(challenge, PayloadChallenge):
            self.watcher = CompletionWatcher(
                challenge, self._payload_resolver(attempt), connect=self._connect
            )
            self._watch_task = asyncio.create_task(self._run_watcher(self.watcher, attempt))
        return challenge

    def _payload_resolver(self, attempt: int):
        async def resolve(payload_id: str) -> SessionGrant:
            if attempt == self._attempt:
                await self._transition(FlowState.VERIFYING)
            return await self.backend.resolve_payload(payload_id)

        return resolve

    async def _run_watcher(self, watcher: CompletionWatcher, attempt: int) -> None:
        try:
            result: WatchResult = await watcher.start()
        except asyncio.CancelledError:
            if attempt != self._attempt:
                return
            raise
        if attempt != self._attempt or result.cancelled:
            return
        if result.ok:
            await self._authenticate(result.grant)
        elif result.error is not None:
            await self._fail(result.error)

    async def wait(self) -> FlowState:
        """Wait for the XUMM channel to settle and return the resulting state."""
        task = self._watch_task
        if task is not None:
            await asyncio.shield(task)
        return self.state

    async def submit_signature(
        self, signature: str, claim: WalletAccountClaim | None = None
    ) -> SessionGrant | None:
        """Verify an extension wallet's signature over the current challenge."""
        if self.state is not FlowState.AWAITING_SIGNATURE or self.provider is Provider.XUMM:
            raise ValidationError("No extension signature is awaited")

        attempt = self._attempt
        claim = claim or self.claim
        challenge = self.challenge
        await self._transition(FlowState.VERIFYING)
        try:
            if isinstance(challenge, NonceTokenChallenge):
                grant = await self.backend.verify_nonce(challenge.token, signature)
            elif isinstance(challenge, HashChallenge):
                if claim is None:
                    raise MissingParameter("pubkey and address are required in request body")
                grant = await self.backend.verify_hash(
                    challenge.value, signature, claim.public_key, claim.address
                )
            else:
                raise ValidationError("No challenge has been issued")
        except AuthFlowError as err:
            if attempt == self._attempt:
                await self._fail(err)
            return None

        if attempt != self._attempt:
            return None
        await self._authenticate(grant)
        return grant

    async def restore(self, token: str | None) -> bool:
        """Re-establish a session from a stored credential.

        An invalid or expired credential is dropped without surfacing an
        error; the flow simply stays IDLE.
        """
        if not token or self.state is not FlowState.IDLE:
            return False
        attempt = self._reset()
        try:
            address = await self.backend.validate_session(token)
        except AuthFlowError as err:
            logger.debug(f"Dropping stored credential: {err.message}")
            return False
        if attempt != self._attempt:
            return False
        self.address = address
        self.token = token
        self.restored = True
        await self._transition(FlowState.AUTHENTICATED)
        return True

    async def disconnect(self) -> None:
        """Back to IDLE: close any channel and forget the credential."""
        self._reset()
        await self._close_watcher()
        await self._transition(FlowState.IDLE)
        await self.hooks.disconnected()
