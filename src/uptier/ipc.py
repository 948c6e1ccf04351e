"""In-process request router for a desktop front end.

Handlers are registered per channel (``"tasks:create"``, ``"schedule:placeTasks"``
...) and receive a single payload mapping. Every handler is wrapped so its
duration is logged and any unexpected exception is logged before it propagates
back to the caller.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from uptier.errors import UptierError
from uptier.service import OPERATIONS, UptierService

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any] | None], dict]


class UnknownChannelError(UptierError):
    error_type = "not_found"

    def __init__(self, channel: str):
        super().__init__(f"No handler registered for channel '{channel}'")
        self.channel = channel


def with_logging(channel: str, handler: Handler) -> Handler:
    @functools.wraps(handler)
    def wrapper(payload: Mapping[str, Any] | None = None) -> dict:
        started = time.perf_counter()
        try:
            result = handler(payload)
        except Exception:
            logger.exception("IPC handler failed", extra={"channel": channel})
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug("IPC %s took %.1f ms", channel, elapsed_ms,
                     extra={"channel": channel, "success": result.get("success")})
        return result

    return wrapper


class IpcRouter:
    def __init__(self):
        self._handlers: dict[str, Handler] = {}

    @property
    def channels(self) -> list[str]:
        return sorted(self._handlers)

    def handle(self, channel: str, handler: Handler) -> None:
        if channel in self._handlers:
            raise ValueError(f"Channel '{channel}' already has a handler")
        self._handlers[channel] = with_logging(channel, handler)

    def dispatch(self, channel: str, payload: Mapping[str, Any] | None = None) -> dict:
        handler = self._handlers.get(channel)
        if handler is None:
            raise UnknownChannelError(channel)
        return handler(payload)

    async def invoke(self, channel: str, payload: Mapping[str, Any] | None = None) -> dict:
        """Awaitable form of ``dispatch`` for event-loop based front ends."""
        return self.dispatch(channel, payload)


def register_ipc_handlers(router: IpcRouter, service: UptierService) -> IpcRouter:
    """Bind every service operation to its channel."""
    for op in OPERATIONS.values():
        router.handle(op.channel, getattr(service, op.name))
    logger.info("Registered %d IPC channels", len(OPERATIONS))
    return router
