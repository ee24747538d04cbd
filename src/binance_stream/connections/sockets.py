"""Connection manager: the reconnect loop and the per-connection event loop.

One ``StreamConnectionManager`` owns one physical connection at a time. Each
session multiplexes four event sources (operator commands, inbound frames, the
stats timer and the unsolicited pong timer) and services exactly one ready
source per iteration, rotating through them so none can starve. All
subscription state changes happen inside that dispatch, so no locking is
needed; the command queue is the only object shared with another thread.

Connection failures are never fatal: the manager waits a fixed delay and
reconnects until a ``Quit`` command (or the end of the command source)
requests shutdown. Commands arriving during the delay are still applied to the
local desired set and take effect through the resync on the next connection.
"""

import asyncio
import functools
import logging
from typing import List, Optional

from binance_stream.common.exceptions import MessageDecodeError
from binance_stream.config.enumerations import EventSource, FrameType
from binance_stream.connections.monitor import StreamMonitor
from binance_stream.connections.transport import (
    CONNECT_TIMEOUT_SECONDS,
    Connector,
    Frame,
    Transport,
    open_websocket,
)
from binance_stream.messaging.handlers import EventHandler
from binance_stream.messaging.models.messages import (
    ApiResponse,
    StreamRequest,
    UnknownMessage,
    parse_frame,
)
from binance_stream.subscription.commands import (
    Command,
    Help,
    ListLocal,
    ListServer,
    Quit,
    SourceClosed,
    Subscribe,
    Unsubscribe,
    log_help,
)
from binance_stream.subscription.reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 3.0

SOURCE_ORDER: List[EventSource] = list(EventSource)


class StreamConnectionManager:
    def __init__(
        self,
        endpoint: str,
        command_queue: "asyncio.Queue[Command]",
        reconciler: Optional[SubscriptionReconciler] = None,
        monitor: Optional[StreamMonitor] = None,
        handler: Optional[EventHandler] = None,
        connector: Optional[Connector] = None,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        connect_timeout: float = CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self.endpoint = endpoint
        self.command_queue = command_queue
        self.reconciler = reconciler or SubscriptionReconciler()
        self.monitor = monitor or StreamMonitor()
        self.handler = handler or EventHandler()
        self.connector: Connector = connector or functools.partial(
            open_websocket, timeout=connect_timeout
        )
        self.reconnect_delay = reconnect_delay

        self.shutdown_requested = False
        self.sessions = 0
        self.command_task: Optional["asyncio.Task[Command]"] = None
        self.next_source_index = 0

    # --- Reconnect loop -----------------------------------------------------

    async def run(self) -> None:
        """Connect, stream and reconnect until shutdown is requested."""
        try:
            while not self.shutdown_requested:
                await self.connect_and_listen()
                if not self.shutdown_requested:
                    await self.wait_before_retry()
        finally:
            command_task, self.command_task = self.command_task, None
            if command_task is not None and not command_task.done():
                command_task.cancel()
                try:
                    await command_task
                except asyncio.CancelledError:
                    logger.debug("Command reader cancelled")

        logger.info("Stream client stopped")

    async def stop(self) -> None:
        """Ask the running loop to shut down, as if the operator typed ``quit``."""
        await self.command_queue.put(Quit())

    async def connect_and_listen(self) -> None:
        logger.info("Connecting to WebSocket endpoint: %s", self.endpoint)
        try:
            transport = await self.connector(self.endpoint)
        except Exception as e:
            logger.error("WebSocket connect error: %s", e)
            return

        self.sessions += 1
        logger.info("WebSocket handshake successful (session %d)", self.sessions)
        try:
            await self.run_session(transport)
        except Exception as e:
            logger.error("WebSocket session error: %s", e)
        finally:
            try:
                await transport.close()
            except Exception as e:
                logger.debug("Error closing transport: %s", e)

    async def wait_before_retry(self) -> None:
        logger.warning("Disconnected; reconnecting in %ss...", self.reconnect_delay)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.reconnect_delay

        while not self.shutdown_requested:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return

            command_task = self.get_command_task()
            done, _ = await asyncio.wait({command_task}, timeout=remaining)
            if command_task in done:
                self.command_task = None
                await self.handle_command(command_task.result(), None)

    # --- Event loop ---------------------------------------------------------

    async def run_session(self, transport: Transport) -> None:
        """Run the multiplexed event loop for one connection until it ends."""
        self.reconciler.reset()
        self.monitor.start_session()
        self.handler.reset_counts()

        await self.send_request(transport, self.reconciler.resync())

        frame_task: "asyncio.Task[Frame]" = asyncio.create_task(
            transport.recv(), name="frame_reader"
        )
        try:
            while True:
                command_task = self.get_command_task()
                if not (command_task.done() or frame_task.done()):
                    await asyncio.wait(
                        {command_task, frame_task},
                        timeout=self.monitor.seconds_until_next_tick(),
                        return_when=asyncio.FIRST_COMPLETED,
                    )

                ready = set(self.monitor.due_timers())
                if command_task.done():
                    ready.add(EventSource.COMMAND)
                if frame_task.done():
                    ready.add(EventSource.FRAME)

                source = self.next_ready_source(ready)
                if source is None:
                    continue

                if source is EventSource.COMMAND:
                    self.command_task = None
                    if not await self.handle_command(command_task.result(), transport):
                        return
                elif source is EventSource.FRAME:
                    if not await self.handle_frame(frame_task.result(), transport):
                        return
                    frame_task = asyncio.create_task(transport.recv(), name="frame_reader")
                elif source is EventSource.STATS_TIMER:
                    self.report_stats()
                else:
                    await transport.pong(b"")
                    self.monitor.pong_sent()
        finally:
            if not frame_task.done():
                frame_task.cancel()
                try:
                    await frame_task
                except asyncio.CancelledError:
                    logger.debug("Frame reader cancelled")
            elif not frame_task.cancelled() and frame_task.exception() is not None:
                logger.debug("Frame reader failed: %s", frame_task.exception())

    def get_command_task(self) -> "asyncio.Task[Command]":
        # Survives across sessions so a command is never lost to a reconnect.
        if self.command_task is None:
            self.command_task = asyncio.create_task(
                self.command_queue.get(), name="command_reader"
            )
        return self.command_task

    def next_ready_source(self, ready: set) -> Optional[EventSource]:
        count = len(SOURCE_ORDER)
        for offset in range(count):
            index = (self.next_source_index + offset) % count
            if SOURCE_ORDER[index] in ready:
                self.next_source_index = (index + 1) % count
                return SOURCE_ORDER[index]
        return None

    # --- Dispatch -------------------------------------------------------------

    async def handle_command(self, command: Command, transport: Optional[Transport]) -> bool:
        """Apply one command. Returns False when the session must end."""
        if isinstance(command, Subscribe):
            await self.send_request(transport, self.reconciler.subscribe(command.topic))
        elif isinstance(command, Unsubscribe):
            await self.send_request(transport, self.reconciler.unsubscribe(command.topic))
        elif isinstance(command, ListLocal):
            self.list_local()
        elif isinstance(command, ListServer):
            if transport is None:
                logger.warning("Not connected; cannot query server subscriptions")
            else:
                await self.send_request(transport, self.reconciler.list_server())
        elif isinstance(command, Help):
            log_help()
        elif isinstance(command, Quit):
            self.shutdown_requested = True
            logger.info("Quit requested; closing websocket.")
            if transport is not None:
                await transport.close()
            return False
        elif isinstance(command, SourceClosed):
            self.shutdown_requested = True
            logger.warning("Command channel closed; shutting down.")
            return False
        else:
            logger.warning("Ignoring unknown command: %s", command)
        return True

    async def handle_frame(self, frame: Frame, transport: Transport) -> bool:
        """Handle one inbound frame. Returns False when the session must end."""
        if frame.type is FrameType.TEXT:
            self.monitor.record_message()
            self.handle_text(frame.text)
        elif frame.type is FrameType.PING:
            logger.info("Received Ping, sending Pong.")
            payload = frame.data if isinstance(frame.data, bytes) else frame.data.encode()
            await transport.pong(payload)
        elif frame.type is FrameType.PONG:
            pass
        elif frame.type is FrameType.CLOSE:
            logger.info("WebSocket closed: %s", frame.text or "no close frame")
            return False
        elif frame.type is FrameType.ERROR:
            logger.error("WebSocket error: %s", frame.text)
            return False
        else:
            logger.debug("Ignoring %s frame (%d bytes)", frame.type.value, len(frame.data))
        return True

    def handle_text(self, text: str) -> None:
        try:
            message = parse_frame(text)
        except MessageDecodeError as e:
            logger.warning("%s (payload: %s)", e, text[:200])
            return

        if isinstance(message, ApiResponse):
            self.reconciler.handle_response(message)
        elif isinstance(message, UnknownMessage):
            self.handler.handle_unknown(message)
        else:
            self.handler.handle_event(message)

    async def send_request(
        self, transport: Optional[Transport], request: Optional[StreamRequest]
    ) -> None:
        if request is None:
            return
        if transport is None:
            logger.info(
                "Not connected; %s id=%d will be covered by the resync on reconnect",
                request.method.value,
                request.id,
            )
            return
        await transport.send(request.to_wire())

    def list_local(self) -> None:
        desired, active = self.reconciler.snapshot()
        logger.info("Desired subscriptions: %s", desired)
        logger.info("Active subscriptions: %s", active)

    def report_stats(self) -> None:
        counts = dict(self.handler.counts)
        self.monitor.report_stats(extra=f", Events: {counts}" if counts else "")
