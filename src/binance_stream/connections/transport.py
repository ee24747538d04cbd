"""Duplex frame transport over a single WebSocket connection.

``recv`` never raises for connection-level failures: a clean close is reported
as a ``CLOSE`` frame and any other failure as an ``ERROR`` frame, so the event
loop can treat both as "leave this session".

The websockets library answers server pings itself, so ``WebsocketTransport``
never surfaces ``PING``/``PONG`` frames; other transports may.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from binance_stream.common.exceptions import TransportError
from binance_stream.config.enumerations import FrameType

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class Frame:
    type: FrameType
    data: Union[str, bytes] = b""

    @property
    def text(self) -> str:
        if isinstance(self.data, bytes):
            return self.data.decode("utf-8", errors="replace")
        return self.data


class Transport(Protocol):
    async def send(self, text: str) -> None: ...

    async def recv(self) -> Frame: ...

    async def pong(self, data: bytes = b"") -> None: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[Transport]]


class WebsocketTransport:
    def __init__(self, websocket: ClientConnection) -> None:
        self.websocket = websocket

    async def send(self, text: str) -> None:
        try:
            await self.websocket.send(text)
        except ConnectionClosed as e:
            raise TransportError(f"Cannot send on closed connection: {e}") from e

    async def recv(self) -> Frame:
        try:
            message = await self.websocket.recv()
        except ConnectionClosedOK as e:
            return Frame(FrameType.CLOSE, _close_reason(e))
        except (ConnectionClosed, WebSocketException, OSError) as e:
            return Frame(FrameType.ERROR, str(e))

        if isinstance(message, str):
            return Frame(FrameType.TEXT, message)
        return Frame(FrameType.BINARY, bytes(message))

    async def pong(self, data: bytes = b"") -> None:
        try:
            await self.websocket.pong(data)
        except ConnectionClosed as e:
            raise TransportError(f"Cannot send pong on closed connection: {e}") from e

    async def close(self) -> None:
        await self.websocket.close()


def _close_reason(error: ConnectionClosed) -> str:
    frame = error.rcvd or error.sent
    if frame is None:
        return "closed without a close frame"
    return f"code={frame.code} reason={frame.reason!r}"


async def open_websocket(url: str, timeout: Optional[float] = None) -> WebsocketTransport:
    """Open a WebSocket connection to ``url``, bounded by ``timeout`` seconds."""
    websocket = await asyncio.wait_for(connect(url), timeout=timeout or CONNECT_TIMEOUT_SECONDS)
    logger.info("WebSocket connected to %s", url)
    return WebsocketTransport(websocket)
