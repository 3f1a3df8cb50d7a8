"""
WebSocket transport for the RTM stream.

Owns the socket and its redial loop. Inbound frames are JSON-decoded and
emitted as ``message``; lifecycle changes are emitted as ``close``,
``connectFailed`` and ``error``. When the server drops the connection
the transport redials on its own, preferring the reconnect URL supplied by
its owner through the ``reconnect_url`` accessor. When it runs out of
redials it emits a final ``close(None, None)`` and stops.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI

from slack_runtime.events import EventHandler, EventManager, TransportEvent
from slack_runtime.types import ReconnectConfig

logger = logging.getLogger(__name__)

ReconnectUrl = Callable[[], "str | None"]

# Seconds close() waits for the run loop to deliver the final close signal
CLOSE_TIMEOUT = 5.0


class WebSocketTransport:
    """Reconnecting JSON WebSocket.

    Args:
        reconnect_url: Accessor for the URL to redial after a drop. When it
            returns ``None`` the original URL is reused.
        reconnect: Back-off settings for redials.
        name: Label used in log output.
    """

    def __init__(
        self,
        reconnect_url: ReconnectUrl | None = None,
        reconnect: ReconnectConfig | None = None,
        name: str = "RTM",
    ) -> None:
        self._reconnect_url = reconnect_url or (lambda: None)
        self._reconnect = reconnect or ReconnectConfig()
        self._events = EventManager(name)
        self._log = logging.getLogger(f"{__name__}.{name}")
        self._url: str | None = None
        self._ws: Any | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    @property
    def is_running(self) -> bool:
        """Whether the run loop is still dialling, connected or backing off."""
        return self._task is not None and not self._task.done()

    def on(self, event_type: TransportEvent | str, handler: EventHandler) -> None:
        self._events.subscribe(event_type, handler)

    async def connect(self, url: str) -> None:
        """Start the connection loop against ``url``. Returns immediately."""
        if self._task and not self._task.done():
            self._log.debug("Already running, replacing connection")
            await self.close()
        self._url = url
        self._closing = False
        self._task = asyncio.create_task(self._run())

    async def send(self, payload: dict[str, Any]) -> None:
        if self._ws is None:
            raise ConnectionError("WebSocket is not connected")
        await self._ws.send(json.dumps(payload))

    async def reconnect(self) -> None:
        """Drop the current socket; the run loop redials."""
        if self._ws is not None:
            await self._ws.close()

    async def close(self) -> None:
        """Close the socket and stop redialling.

        An open socket is closed cleanly and its ``close`` signal delivered
        before this returns (bounded by ``CLOSE_TIMEOUT``); a pending dial
        or back-off sleep is cancelled.
        """
        self._closing = True
        task = self._task
        was_open = self._ws is not None
        if was_open:
            await self._ws.close()
        if task and not task.done() and task is not asyncio.current_task():
            if was_open:
                try:
                    await asyncio.wait_for(asyncio.shield(task), timeout=CLOSE_TIMEOUT)
                except asyncio.TimeoutError:
                    self._log.warning("Run loop did not stop within %.1fs", CLOSE_TIMEOUT)
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._ws = None

    # ---- Internal ----

    async def _run(self) -> None:
        url = self._url
        failures = 0
        while not self._closing and url:
            try:
                ws = await websockets.connect(url)
            except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
                self._log.warning("WebSocket connect failed: %s", e)
                await self._events.emit(TransportEvent.CONNECT_FAILED)
                failures += 1
            else:
                failures = 0
                await self._listen(ws)
                if self._closing:
                    break
                self._log.info("WebSocket dropped, redialling")

            if failures > self._reconnect.max_retries:
                self._log.warning("Giving up after %d failed connects", failures)
                await self._events.emit(TransportEvent.CLOSE, None, None)
                break
            await asyncio.sleep(self._reconnect.delay_for(max(failures - 1, 0)))
            url = self._reconnect_url() or self._url

    async def _listen(self, ws: Any) -> None:
        self._ws = ws
        self._log.debug("WebSocket connected")
        try:
            async for raw in ws:
                try:
                    payload = json.loads(raw)
                except ValueError:
                    self._log.warning("Dropping malformed frame")
                    continue
                if not isinstance(payload, dict):
                    self._log.debug("Ignoring non-object frame")
                    continue
                await self._events.emit(TransportEvent.MESSAGE, payload)
        except ConnectionClosedError as e:
            await self._events.emit(TransportEvent.ERROR, e)
        except ConnectionClosed:
            pass
        finally:
            self._ws = None
        await self._events.emit(TransportEvent.CLOSE, ws.close_code, ws.close_reason)
