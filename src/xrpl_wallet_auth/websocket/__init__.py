"""Completion watcher for XUMM sign-in payloads.

One watcher owns exactly one websocket to the payload's status channel. It
reads status events until the first ``signed`` event, resolves that payload
into a session, closes the channel and reports a single WatchResult. It never
reconnects and has no timeout of its own.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import websockets

from ..errors import AuthFlowError, UnknownError, UpstreamError, UpstreamUnavailable
from ..types import PayloadChallenge, PayloadState, PayloadStatus, SessionGrant

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[SessionGrant]]
Connector = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class WatchResult:
    grant: SessionGrant | None = None
    error: AuthFlowError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.grant is not None


class CompletionWatcher:
    def __init__(
        self,
        payload: PayloadChallenge,
        resolve: Resolver,
        connect: Connector | None = None,
    ) -> None:
        """Create a watcher for one payload.

        Args:
            payload: Challenge returned by the issuer; its channel_url is opened
            resolve: Async callable turning a signed payload id into a SessionGrant
            connect: Websocket connector, defaults to websockets.connect
        """
        self.payload = payload
        self.status = PayloadStatus(id=payload.payload_id, channel_url=payload.channel_url)
        self._resolve = resolve
        self._connect = connect or websockets.connect
        self._ws: Any | None = None
        self._task: asyncio.Task | None = None
        self._closing = False
        self._result: WatchResult | None = None

    @property
    def closed(self) -> bool:
        return self._ws is None and (self._closing or self._result is not None)

    @property
    def result(self) -> WatchResult | None:
        return self._result

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.watch())
        return self._task

    async def wait(self) -> WatchResult:
        return await self.start()

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Inbound status events, parsed. Ends when the channel closes."""
        if self._ws is None:
            return
        async for raw in self._ws:
            if self._closing:
                logger.debug(f"Dropping event for {self.status.id}: channel closing")
                return
            try:
                event = json.loads(raw)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-JSON frame on {self.status.id}")
                continue
            if not isinstance(event, dict):
                continue
            self._track(event)
            yield event

    def _track(self, event: dict[str, Any]) -> None:
        if event.get("opened") is True and self.status.state is PayloadState.CREATED:
            self.status.state = PayloadState.PENDING
        elif event.get("expired") is True:
            self.status.state = PayloadState.EXPIRED
            logger.warning(f"XUMM payload {self.status.id} reported expired")

    def _is_authoritative(self, event: dict[str, Any]) -> bool:
        if event.get("signed") is not True:
            return False
        event_id = event.get("payload_uuidv4")
        if event_id and event_id != self.status.id:
            logger.warning(f"Ignoring signed event for foreign payload {event_id}")
            return False
        return True

    async def watch(self) -> WatchResult:
        if self._result is not None:
            return self._result
        try:
            return self._finish(await self._watch())
        finally:
            await self._close_channel()

    async def _watch(self) -> WatchResult:
        try:
            self._ws = await self._connect(self.status.channel_url)
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as err:
            logger.error(f"Could not open XUMM channel {self.status.channel_url}: {err}")
            return WatchResult(error=UpstreamUnavailable("WebSocket connection error"))
        except Exception as err:
            logger.error(f"Could not open XUMM channel {self.status.channel_url}: {err}", exc_info=True)
            return WatchResult(error=UnknownError(str(err) or "WebSocket connection error"))
        logger.debug(f"Watching XUMM payload {self.status.id}")

        try:
            async with contextlib.aclosing(self.events()) as events:
                async for event in events:
                    if not self._is_authoritative(event):
                        continue
                    self.status.state = PayloadState.SIGNED
                    self._closing = True
                    return await self._resolve_signed()
        except websockets.ConnectionClosedError as err:
            if self._closing:
                return WatchResult(cancelled=True)
            logger.error(f"XUMM channel for {self.status.id} failed: {err}")
            return WatchResult(error=UpstreamUnavailable("WebSocket connection error"))
        except (OSError, websockets.WebSocketException) as err:
            logger.error(f"XUMM channel for {self.status.id} failed: {err}")
            return WatchResult(error=UpstreamUnavailable("WebSocket connection error"))
        except Exception as err:
            logger.error(f"XUMM channel for {self.status.id} failed: {err}", exc_info=True)
            return WatchResult(error=UnknownError(str(err) or "WebSocket connection error"))

        if self._closing:
            return WatchResult(cancelled=True)
        logger.info(f"XUMM channel for {self.status.id} closed before signing")
        return WatchResult(error=UpstreamError("Channel closed before the payload was signed"))

    async def _resolve_signed(self) -> WatchResult:
        try:
            grant = await self._resolve(self.status.id)
        except AuthFlowError as err:
            logger.warning(f"XUMM payload {self.status.id} failed verification: {err.message}")
            return WatchResult(error=err)
        except Exception as err:
            logger.error(f"XUMM payload {self.status.id} resolution crashed: {err}", exc_info=True)
            return WatchResult(error=UnknownError(str(err) or "Failed to verify signature"))
        return WatchResult(grant=grant)

    def _finish(self, result: WatchResult) -> WatchResult:
        if self._result is None:
            self._result = result
        return self._result

    async def _close_channel(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(OSError, websockets.WebSocketException):
                await ws.close()

    async def cancel(self) -> None:
        """Close the channel and stop watching. Safe to call at any time."""
        self._closing = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._close_channel()
        self._finish(WatchResult(cancelled=True))

    close = cancel


__all__ = ["CompletionWatcher", "WatchResult"]
