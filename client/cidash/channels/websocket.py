"""Websocket implementation of the status channel, built on aiohttp."""

import asyncio
import logging
from typing import Optional

import aiohttp

from cidash.services.connectivity import CloseHandler, ErrorHandler, FrameHandler
from cidash.services.exceptions import NetworkFailure

logger = logging.getLogger(__name__)

CLEAN_CLOSE_CODES = (aiohttp.WSCloseCode.OK, aiohttp.WSCloseCode.GOING_AWAY)


class WebSocketChannel:
    """
    One websocket connection driven by a background task.

    Text frames (and UTF-8 binary frames) are passed to `on_frame` as strings.
    A connection that cannot be established, or that reports an error, calls
    `on_error`; the end of the stream calls `on_close` with whether the peer
    closed with a normal close code. `close()` cancels the task, which aborts
    a pending handshake as well as an established connection, and suppresses
    further callbacks.
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, heartbeat: Optional[float] = None):
        self._session = session
        self._owns_session = session is None
        self.heartbeat = heartbeat
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._settled = False

    async def open(
        self,
        url: str,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> None:
        if self._task is not None or self._closed:
            raise NetworkFailure("Channel has already been opened")
        if not url.startswith(("ws://", "wss://")):
            raise NetworkFailure(f"Not a websocket URL: {url}")
        self._task = asyncio.create_task(self._run(url, on_frame, on_error, on_close))

    async def _run(self, url: str, on_frame: FrameHandler, on_error: ErrorHandler, on_close: CloseHandler) -> None:
        session = self._session or aiohttp.ClientSession()
        try:
            async with session.ws_connect(url, heartbeat=self.heartbeat) as ws:
                logger.debug(f"Websocket connection opened: {url}")
                async for msg in ws:
                    if self._closed:
                        return
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        on_frame(msg.data)
                    elif msg.type == aiohttp.WSMsgType.BINARY:
                        on_frame(msg.data.decode("utf-8", errors="replace"))
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        self._settled = True
                        on_error(ws.exception())
                        return

                if not self._closed:
                    self._settled = True
                    on_close(ws.close_code in CLEAN_CLOSE_CODES)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"Websocket connection to {url} failed: {e}")
            if not self._closed:
                self._settled = True
                on_error(e)
        finally:
            if self._owns_session:
                await session.close()

    async def close(self) -> None:
        self._closed = True
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if self._settled:
            # Outcome already reported; only the session teardown remains
            await task
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def websocket_channel_factory(heartbeat: Optional[float] = None):
    """Factory suitable for ConnectivityMonitor / RegistryMonitorPool."""
    return lambda: WebSocketChannel(heartbeat=heartbeat)
