"""
Stream client orchestration.

Wires the command ingress, reconciler, monitor and connection manager together
for the three ways of running the client: a dynamic public stream driven by
operator commands, a fixed-URL public stream, and the user-data stream with its
listen key lifecycle.
"""

import asyncio
import logging
from typing import Iterable, Optional

from injector import Injector

from binance_stream.config import StreamSettings
from binance_stream.connections.listen_key import ListenKeyClient
from binance_stream.connections.monitor import StreamMonitor
from binance_stream.connections.sockets import StreamConnectionManager
from binance_stream.connections.transport import Connector
from binance_stream.subscription.commands import CommandIngress, log_help, make_command_queue
from binance_stream.subscription.reconciler import SubscriptionReconciler
from binance_stream.utils.helpers import normalize_topic

logger = logging.getLogger(__name__)


def build_manager(
    endpoint: str,
    settings: StreamSettings,
    topics: Iterable[str] = (),
    connector: Optional[Connector] = None,
) -> StreamConnectionManager:
    return StreamConnectionManager(
        endpoint=endpoint,
        command_queue=make_command_queue(settings.command_queue_size),
        reconciler=SubscriptionReconciler(topics),
        monitor=StreamMonitor(
            stats_interval=settings.stats_interval,
            pong_interval=settings.pong_interval,
        ),
        connector=connector,
        reconnect_delay=settings.reconnect_delay,
        connect_timeout=settings.connect_timeout,
    )


def start_ingress(
    manager: StreamConnectionManager,
    settings: StreamSettings,
    lines: Optional[Iterable[str]] = None,
) -> CommandIngress:
    ingress = CommandIngress(
        manager.command_queue,
        asyncio.get_running_loop(),
        lines=lines,
        overflow=settings.command_overflow,
    )
    ingress.start()
    return ingress


async def run_dynamic(
    settings: StreamSettings,
    lines: Optional[Iterable[str]] = None,
    connector: Optional[Connector] = None,
) -> None:
    """Stream the public endpoint, subscribing to ``settings.topics`` and then to operator commands."""
    manager = build_manager(settings.spot_ws_url, settings, settings.topics, connector)
    start_ingress(manager, settings, lines)
    log_help()
    await manager.run()


async def run_fixed(
    settings: StreamSettings,
    symbol: str,
    lines: Optional[Iterable[str]] = None,
    connector: Optional[Connector] = None,
) -> None:
    """Stream ``<symbol>@trade`` through a fixed URL; no subscription request is sent at connect."""
    endpoint = f"{settings.spot_ws_url}/{normalize_topic(symbol)}@trade"
    manager = build_manager(endpoint, settings, (), connector)
    start_ingress(manager, settings, lines)
    await manager.run()


async def run_user_data(
    injector: Injector,
    settings: StreamSettings,
    lines: Optional[Iterable[str]] = None,
    connector: Optional[Connector] = None,
) -> None:
    """Stream account events for the listen key acquired at startup.

    Failure to acquire the listen key propagates to the caller. A failed
    renewal stops the client.
    """
    async with injector.get(ListenKeyClient) as client:
        token = await client.acquire_session_token()

        manager = build_manager(client.stream_url(token), settings, (), connector)
        start_ingress(manager, settings, lines)

        renew_task = asyncio.create_task(
            client.keep_alive(
                token,
                interval=settings.listen_key_renew_interval,
                on_failure=manager.stop,
            ),
            name="listen_key_renewal",
        )
        try:
            await manager.run()
        finally:
            renew_task.cancel()
            try:
                await renew_task
            except asyncio.CancelledError:
                logger.debug("Listen key renewal task cancelled")
