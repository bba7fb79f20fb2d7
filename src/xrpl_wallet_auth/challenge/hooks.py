from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..types import FlowFailure, FlowState, SessionGrant

logger = logging.getLogger(__name__)

StateChangeHandler = Callable[[FlowState, FlowState], Awaitable[None] | None]
AuthenticatedHandler = Callable[[SessionGrant], Awaitable[None] | None]
FailedHandler = Callable[[FlowFailure], Awaitable[None] | None]
DisconnectHandler = Callable[[], Awaitable[None] | None]


@dataclass
class FlowHooks:
    """Observers for an authentication flow.

    Usage:
        hooks = FlowHooks()

        @hooks.on_authenticated()
        async def remember(grant): ...

    Handlers may be plain functions or coroutines. A failing handler is logged
    and does not affect the flow.
    """

    state_change_handlers: list[StateChangeHandler] = field(default_factory=list)
    authenticated_handlers: list[AuthenticatedHandler] = field(default_factory=list)
    failed_handlers: list[FailedHandler] = field(default_factory=list)
    disconnect_handlers: list[DisconnectHandler] = field(default_factory=list)

    def on_state_change(self) -> Callable[[StateChangeHandler], StateChangeHandler]:
        def decorator(fn: StateChangeHandler) -> StateChangeHandler:
            self.state_change_handlers.append(fn)
            return fn

        return decorator

    def on_authenticated(self) -> Callable[[AuthenticatedHandler], AuthenticatedHandler]:
        def decorator(fn: AuthenticatedHandler) -> AuthenticatedHandler:
            self.authenticated_handlers.append(fn)
            return fn

        return decorator

    def on_failed(self) -> Callable[[FailedHandler], FailedHandler]:
        def decorator(fn: FailedHandler) -> FailedHandler:
            self.failed_handlers.append(fn)
            return fn

        return decorator

    def on_disconnect(self) -> Callable[[DisconnectHandler], DisconnectHandler]:
        def decorator(fn: DisconnectHandler) -> DisconnectHandler:
            self.disconnect_handlers.append(fn)
            return fn

        return decorator

    async def _call_all(self, handlers: list[Callable[..., Any]], *args: Any) -> None:
        for handler in list(handlers):
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Flow hook {getattr(handler, '__name__', handler)} failed: {e}", exc_info=True)

    async def state_changed(self, old: FlowState, new: FlowState) -> None:
        await self._call_all(self.state_change_handlers, old, new)

    async def authenticated(self, grant: SessionGrant) -> None:
        await self._call_all(self.authenticated_handlers, grant)

    async def failed(self, failure: FlowFailure) -> None:
        await self._call_all(self.failed_handlers, failure)

    async def disconnected(self) -> None:
        await self._call_all(self.disconnect_handlers)
