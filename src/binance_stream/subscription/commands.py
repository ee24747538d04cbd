"""Operator commands and the line-reading producer that feeds them to the connection loop.

The producer runs in its own thread and owns no client state; it only submits
commands to a bounded ``asyncio.Queue`` owned by the event loop. When the queue
is full it either blocks (``OverflowPolicy.BLOCK``) or drops the command
(``OverflowPolicy.DROP``). End of input is reported as ``SourceClosed``.
``Quit`` and ``SourceClosed`` always wait for room, whatever the policy, so a
shutdown request is never dropped.
"""

import asyncio
import concurrent.futures
import logging
import sys
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from binance_stream.config.enumerations import OverflowPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Subscribe:
    topic: str


@dataclass(frozen=True)
class Unsubscribe:
    topic: str


@dataclass(frozen=True)
class ListLocal:
    pass


@dataclass(frozen=True)
class ListServer:
    pass


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class SourceClosed:
    """No more commands will ever arrive."""


Command = Union[Subscribe, Unsubscribe, ListLocal, ListServer, Help, Quit, SourceClosed]

HELP_LINES = (
    "Dynamic mode commands:",
    "  addsub <stream>    - subscribe to a stream, e.g. btcusdt@trade",
    "  delsub <stream>    - unsubscribe from a stream",
    "  list               - show local desired/active subscriptions",
    "  listserver         - query server-side active subscriptions",
    "  help               - show command help",
    "  quit               - close websocket and exit",
)

NO_ARG_COMMANDS: dict[str, type] = {
    "list": ListLocal,
    "listserver": ListServer,
    "help": Help,
    "quit": Quit,
}

USAGE = "Try: addsub <stream>, delsub <stream>, list, listserver, help, quit"


def log_help() -> None:
    for line in HELP_LINES:
        logger.info(line)


def parse_command(line: str) -> Optional[Command]:
    """Parse one input line. Blank and unrecognised lines yield None.

    Topic arguments are passed through as typed; normalization happens in the
    reconciler.
    """
    parts = line.split()
    if not parts:
        return None

    name, args = parts[0], parts[1:]
    if name == "addsub" and len(args) == 1:
        return Subscribe(args[0])
    if name == "delsub" and len(args) == 1:
        return Unsubscribe(args[0])
    if not args and name in NO_ARG_COMMANDS:
        return NO_ARG_COMMANDS[name]()

    logger.warning("Unknown command: %r. %s", line.strip(), USAGE)
    return None


def make_command_queue(maxsize: int = 100) -> "asyncio.Queue[Command]":
    return asyncio.Queue(maxsize=maxsize)


class CommandIngress:
    """Reads command lines on a background thread and submits them to the loop's queue."""

    def __init__(
        self,
        queue: "asyncio.Queue[Command]",
        loop: asyncio.AbstractEventLoop,
        lines: Optional[Iterable[str]] = None,
        overflow: OverflowPolicy = OverflowPolicy.BLOCK,
    ) -> None:
        self.queue = queue
        self.loop = loop
        self.lines = lines if lines is not None else sys.stdin
        self.overflow = overflow
        self.thread: Optional[threading.Thread] = None

    def start(self) -> threading.Thread:
        self.thread = threading.Thread(target=self.run, name="command_ingress", daemon=True)
        self.thread.start()
        return self.thread

    def run(self) -> None:
        try:
            for line in self.lines:
                command = parse_command(line)
                if command is None:
                    continue

                if isinstance(command, Quit):
                    self.put_blocking(command)
                    return

                if not self.submit(command):
                    return
        except (OSError, ValueError) as e:
            logger.error("Command input failed: %s", e)

        self.put_blocking(SourceClosed())

    def submit(self, command: Command) -> bool:
        """Hand a command to the loop. Returns False once the loop is gone."""
        if self.overflow is OverflowPolicy.BLOCK:
            return self.put_blocking(command)

        try:
            self.loop.call_soon_threadsafe(self._put_or_drop, command)
        except RuntimeError:
            logger.debug("Event loop closed; command ingress stopping")
            return False
        return True

    def put_blocking(self, command: Command) -> bool:
        try:
            future = asyncio.run_coroutine_threadsafe(self.queue.put(command), self.loop)
        except RuntimeError:
            logger.debug("Event loop closed; command ingress stopping")
            return False
        try:
            future.result()
        except concurrent.futures.CancelledError:
            logger.debug("Command put cancelled; command ingress stopping")
            return False
        return True

    def _put_or_drop(self, command: Command) -> None:
        try:
            self.queue.put_nowait(command)
        except asyncio.QueueFull:
            logger.warning("Command queue is full - dropping %s", command)
