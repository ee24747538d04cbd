"""Shared fakes for driving the connection manager without a network."""

import asyncio
import json
from typing import Any, Callable, List, Union

import pytest

from binance_stream.common.exceptions import TransportError
from binance_stream.config.enumerations import FrameType
from binance_stream.connections.transport import Frame


class FakeTransport:
    """In-memory transport: tests feed inbound frames and inspect what was written."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Frame] = asyncio.Queue()
        self.sent: List[str] = []
        self.pongs: List[bytes] = []
        self.closed = False

    async def send(self, text: str) -> None:
        if self.closed:
            raise TransportError("closed")
        self.sent.append(text)

    async def recv(self) -> Frame:
        return await self.inbound.get()

    async def pong(self, data: bytes = b"") -> None:
        self.pongs.append(data)

    async def close(self) -> None:
        self.closed = True

    def feed(self, frame: Frame) -> None:
        self.inbound.put_nowait(frame)

    def feed_text(self, payload: Union[str, dict]) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.feed(Frame(FrameType.TEXT, text))

    @property
    def sent_json(self) -> List[dict]:
        return [json.loads(text) for text in self.sent]


class ScriptedConnector:
    """Returns scripted outcomes in order, then fresh transports once the script runs out."""

    def __init__(self, *outcomes: Union[FakeTransport, BaseException]) -> None:
        self.outcomes = list(outcomes)
        self.endpoints: List[str] = []
        self.transports: List[FakeTransport] = []

    async def __call__(self, endpoint: str) -> FakeTransport:
        self.endpoints.append(endpoint)
        outcome = self.outcomes.pop(0) if self.outcomes else FakeTransport()
        if isinstance(outcome, BaseException):
            raise outcome
        self.transports.append(outcome)
        return outcome


async def wait_until(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it is truthy or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_connector() -> Callable[..., ScriptedConnector]:
    def factory(*outcomes: Union[FakeTransport, BaseException]) -> ScriptedConnector:
        return ScriptedConnector(*outcomes)

    return factory


@pytest.fixture
def until() -> Callable[..., Any]:
    return wait_until
