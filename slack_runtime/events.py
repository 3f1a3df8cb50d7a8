"""
Event subscription system for the Slack runtime client.

Every emitter in the package (the WebSocket transport, the RTM stream and
the client facade) owns an :class:`EventManager`. Handlers are registered
per event name and called in registration order with the emitted
arguments; they may be plain functions or coroutine functions.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[..., Coroutine[Any, Any, None] | None]


class TransportEvent(str, Enum):
    """Signals raised by the WebSocket transport."""

    MESSAGE = "message"
    CLOSE = "close"
    CONNECT_FAILED = "connectFailed"
    ERROR = "error"


class StreamEvent(str, Enum):
    """Signals raised by the RTM stream."""

    REQUEST_FAIL = "requestFail"
    REQUEST_SUCCESS = "requestSuccess"
    ORG_DATA = "orgData"
    EVENT = "event"
    CLOSE = "close"
    CONNECT_FAILED = "connectFailed"
    ERROR = "error"


class ClientEvent(str, Enum):
    """Signals raised by the client facade besides the remote event types."""

    EVENT = "event"
    ORG_DATA = "orgData"
    RTM_FAIL = "rtmFail"
    RTM_CLOSE = "rtmClose"
    RTM_CONNECT_FAILED = "rtmConnectFailed"
    RTM_ERROR = "rtmError"


class PushEvent(str, Enum):
    """Remote event types the client reacts to itself."""

    HELLO = "hello"
    GOODBYE = "goodbye"
    RECONNECT_URL = "reconnect_url"
    TEAM_JOIN = "team_join"
    CHANNEL_CREATED = "channel_created"
    GROUP_JOINED = "group_joined"


def _key(event_type: str | Enum) -> str:
    return event_type.value if isinstance(event_type, Enum) else event_type


class EventManager:
    """Named-event fan-out."""

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str | Enum, handler: EventHandler) -> None:
        """Register a handler for a specific event type."""
        self._handlers[_key(event_type)].append(handler)

    def unsubscribe(self, event_type: str | Enum, handler: EventHandler | None = None) -> None:
        """Remove a handler (or all handlers) for an event type."""
        key = _key(event_type)
        if handler is None:
            self._handlers.pop(key, None)
        else:
            handlers = self._handlers.get(key, [])
            self._handlers[key] = [h for h in handlers if h is not handler]

    def listener_count(self, event_type: str | Enum) -> int:
        return len(self._handlers.get(_key(event_type), []))

    async def emit(self, event_type: str | Enum, *args: Any) -> None:
        """Call every handler for ``event_type`` with ``args``, in order.

        A failing handler is logged and does not stop the others.
        """
        key = _key(event_type)
        for handler in list(self._handlers.get(key, [])):
            try:
                result = handler(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Error in %s handler for %s", self.name, key)
