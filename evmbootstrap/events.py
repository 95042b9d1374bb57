"""In-process event stream for discovered peers.

A plain synchronous observer list: handlers registered for an event name
are called in registration order each time it is dispatched.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger()

PEER_EVENT = "peer"

Handler = Callable[[Any], None]


class EventEmitter:
    """Minimal typed-by-convention event emitter."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def add_listener(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def safe_dispatch(self, event: str, detail: Any) -> None:
        """Call every handler for *event*; a failing handler is logged and skipped."""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(detail)
            except Exception as exc:
                logger.warning(
                    "event_handler_failed",
                    event_name=event,
                    error=str(exc),
                )
