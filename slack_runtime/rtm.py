"""
RTM (real-time messaging) stream.

Bootstraps a session with ``rtm.start``, publishes the returned snapshot,
then hands the socket URL to the transport and re-emits every inbound
payload as ``event(type, payload)``.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from slack_runtime.dispatcher import Dispatcher
from slack_runtime.errors import ApiError, RequestError
from slack_runtime.events import EventHandler, EventManager, PushEvent, StreamEvent, TransportEvent
from slack_runtime.transport import WebSocketTransport
from slack_runtime.types import ReconnectConfig, RTMStartResult

logger = logging.getLogger(__name__)

START_METHOD = "rtm.start"


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class RTMStream:
    """One real-time event feed.

    ``start()`` never raises for remote failures: a failed ``rtm.start`` is
    reported as ``requestFail(error)`` and retrying is left to the caller.
    Socket drops are handled by the transport, which redials on its own
    using :attr:`reconnect_url` when the server has supplied one. When the
    transport gives up it reports ``close(None, None)``; the stream is then
    DISCONNECTED and ``start()`` can be called again.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        token: str,
        prefix: str | None = None,
        transport: Any | None = None,
        reconnect: ReconnectConfig | None = None,
    ) -> None:
        self.name = f"{prefix}|RTM" if prefix else "RTM"
        self._dispatcher = dispatcher
        self._token = token
        self._events = EventManager(self.name)
        self._log = logging.getLogger(f"{__name__}.{self.name}")
        self._state = StreamState.DISCONNECTED
        self._url: str | None = None
        self._reconnect_url: str | None = None
        self._message_ids = itertools.count(1)

        self._transport = transport or WebSocketTransport(
            reconnect_url=lambda: self.reconnect_url,
            reconnect=reconnect,
            name=self.name,
        )
        self._transport.on(TransportEvent.MESSAGE, self._on_message)
        self._transport.on(TransportEvent.CLOSE, self._on_close)
        self._transport.on(TransportEvent.CONNECT_FAILED, self._on_connect_failed)
        self._transport.on(TransportEvent.ERROR, self._on_error)

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def url(self) -> str | None:
        """URL the socket was opened against."""
        return self._url

    @property
    def reconnect_url(self) -> str | None:
        """Fresh URL from the last ``reconnect_url`` event, if any."""
        return self._reconnect_url

    def on(self, event_type: StreamEvent | str, handler: EventHandler) -> None:
        self._events.subscribe(event_type, handler)

    def off(self, event_type: StreamEvent | str, handler: EventHandler | None = None) -> None:
        self._events.unsubscribe(event_type, handler)

    async def start(self) -> None:
        """Fetch the snapshot and open the socket."""
        if self._state in (StreamState.CONNECTING, StreamState.CONNECTED):
            self._log.debug("start() while %s, ignoring", self._state.value)
            return
        self._state = StreamState.CONNECTING

        try:
            body = await self._dispatcher.dispatch(START_METHOD, {"token": self._token})
            result = RTMStartResult.model_validate(body)
        except PydanticValidationError as e:
            self._log.warning("rtm.start returned an unusable body: %s", e)
            await self._fail(ApiError("invalid_response", method=START_METHOD, body=None))
            return
        except RequestError as e:
            self._log.warning("rtm.start failed: %s", e)
            await self._fail(e)
            return

        await self._events.emit(StreamEvent.REQUEST_SUCCESS)
        await self._events.emit(StreamEvent.ORG_DATA, result.snapshot())

        self._url = result.url
        self._reconnect_url = None
        self._log.info("Connecting to RTM")
        await self._transport.connect(result.url)

    async def stop(self) -> None:
        """Close the socket for good."""
        self._state = StreamState.CLOSED
        await self._transport.close()
        self._log.info("RTM stream closed")

    async def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Write one frame, stamping it with the next message id."""
        frame = {"id": next(self._message_ids), **payload}
        await self._transport.send(frame)
        return frame

    async def ping(self) -> dict[str, Any]:
        return await self.send({"type": "ping"})

    # ---- Transport handlers ----

    async def _fail(self, error: RequestError) -> None:
        self._state = StreamState.DISCONNECTED
        await self._events.emit(StreamEvent.REQUEST_FAIL, error)

    async def _on_message(self, payload: dict[str, Any]) -> None:
        event_type = payload.get("type")

        if event_type == PushEvent.HELLO.value:
            self._state = StreamState.CONNECTED
        elif event_type == PushEvent.RECONNECT_URL.value:
            self._reconnect_url = payload.get("url") or self._reconnect_url
        elif event_type == PushEvent.GOODBYE.value:
            self._log.info("Server said goodbye, reconnecting")

        await self._events.emit(StreamEvent.EVENT, event_type, payload)

        if event_type == PushEvent.GOODBYE.value and self._state != StreamState.CLOSED:
            await self._transport.reconnect()

    async def _on_close(self, code: int | None, reason: str | None) -> None:
        if self._state != StreamState.CLOSED:
            self._state = StreamState.DISCONNECTED
        await self._events.emit(StreamEvent.CLOSE, code, reason)

    async def _on_connect_failed(self) -> None:
        await self._events.emit(StreamEvent.CONNECT_FAILED)

    async def _on_error(self, error: BaseException) -> None:
        await self._events.emit(StreamEvent.ERROR, error)
