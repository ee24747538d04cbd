"""End-to-end tests for the connection manager's reconnect and event loops."""

import asyncio
import logging

import pytest

from binance_stream.config.enumerations import EventSource, FrameType
from binance_stream.connections.monitor import StreamMonitor
from binance_stream.connections.sockets import StreamConnectionManager
from binance_stream.connections.transport import Frame
from binance_stream.subscription.commands import (
    ListLocal,
    ListServer,
    Quit,
    SourceClosed,
    Subscribe,
    Unsubscribe,
    make_command_queue,
)
from binance_stream.subscription.reconciler import SubscriptionReconciler

from conftest import FakeTransport

ENDPOINT = "wss://stream.example/ws"


def make_manager(
    connector,
    topics=("ethusdt@trade",),
    reconnect_delay: float = 0.01,
    stats_interval: float = 60.0,
    pong_interval: float = 60.0,
) -> StreamConnectionManager:
    return StreamConnectionManager(
        endpoint=ENDPOINT,
        command_queue=make_command_queue(10),
        reconciler=SubscriptionReconciler(topics),
        monitor=StreamMonitor(stats_interval=stats_interval, pong_interval=pong_interval),
        connector=connector,
        reconnect_delay=reconnect_delay,
    )


async def quit_and_wait(manager: StreamConnectionManager, task: "asyncio.Task[None]") -> None:
    await manager.command_queue.put(Quit())
    await asyncio.wait_for(task, timeout=2.0)


# ---------------------------------------------------------------------------
# Subscription lifecycle over one connection
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_connect_sends_resync_and_confirmation_activates(
    transport, make_connector, until
) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())

    await until(lambda: transport.sent)
    assert transport.sent == ['{"method":"SUBSCRIBE","params":["ethusdt@trade"],"id":1}']

    transport.feed_text('{"result":null,"id":1}')
    await until(lambda: manager.reconciler.active == {"ethusdt@trade"})

    await quit_and_wait(manager, task)
    assert transport.closed
    assert manager.shutdown_requested


@pytest.mark.asyncio
async def test_connect_with_no_topics_sends_nothing(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport), topics=())
    task = asyncio.create_task(manager.run())

    await until(lambda: manager.sessions == 1)
    await quit_and_wait(manager, task)

    assert transport.sent == []


@pytest.mark.asyncio
async def test_addsub_and_rejection_rollback(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)
    transport.feed_text({"result": None, "id": 1})

    await manager.command_queue.put(Subscribe("btcusdt@trade"))
    await until(lambda: len(transport.sent) == 2)

    assert transport.sent[1] == '{"method":"SUBSCRIBE","params":["btcusdt@trade"],"id":2}'
    assert manager.reconciler.desired == {"ethusdt@trade", "btcusdt@trade"}

    transport.feed_text({"error": {"code": -1, "msg": "x"}, "id": 2})
    await until(lambda: manager.reconciler.desired == {"ethusdt@trade"})
    assert manager.reconciler.active == {"ethusdt@trade"}

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_delsub_confirmation_removes_from_active(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)
    transport.feed_text({"result": None, "id": 1})
    await until(lambda: manager.reconciler.active == {"ethusdt@trade"})

    await manager.command_queue.put(Unsubscribe("ethusdt@trade"))
    await until(lambda: len(transport.sent) == 2)
    assert transport.sent_json[1] == {
        "method": "UNSUBSCRIBE",
        "params": ["ethusdt@trade"],
        "id": 2,
    }

    transport.feed_text({"result": None, "id": 2})
    await until(lambda: not manager.reconciler.confirmed)
    assert manager.reconciler.active == frozenset()

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_duplicate_subscribe_sends_once(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)

    await manager.command_queue.put(Subscribe("btcusdt@trade"))
    await manager.command_queue.put(Subscribe("BTCUSDT@trade"))
    await manager.command_queue.put(ListLocal())

    await quit_and_wait(manager, task)
    subscribes = [m for m in transport.sent_json if m.get("params") == ["btcusdt@trade"]]
    assert len(subscribes) == 1


@pytest.mark.asyncio
async def test_listserver_sends_query_without_params(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)

    await manager.command_queue.put(ListServer())
    await until(lambda: len(transport.sent) == 2)
    assert transport.sent[1] == '{"method":"LIST_SUBSCRIPTIONS","id":2}'

    transport.feed_text({"result": ["ethusdt@trade"], "id": 2})
    await until(lambda: 2 not in manager.reconciler.pending)

    await quit_and_wait(manager, task)


# ---------------------------------------------------------------------------
# Inbound frame handling
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ping_is_answered_with_matching_pong(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())

    transport.feed(Frame(FrameType.PING, b"abc"))
    await until(lambda: transport.pongs == [b"abc"])

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_malformed_and_unknown_frames_do_not_end_session(
    transport, make_connector, until
) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)

    transport.feed_text("not json {")
    transport.feed_text({"result": None, "id": 99})
    transport.feed(Frame(FrameType.PONG, b""))
    transport.feed(Frame(FrameType.BINARY, b"\x00\x01"))
    transport.feed_text({"result": None, "id": 1})

    await until(lambda: manager.reconciler.active == {"ethusdt@trade"})
    assert manager.sessions == 1

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_domain_events_are_counted(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())

    transport.feed_text(
        {
            "e": "trade",
            "E": 1700000000000,
            "s": "ETHUSDT",
            "t": 12345,
            "p": "2000.50",
            "q": "0.1",
            "T": 1700000000000,
            "m": True,
        }
    )
    transport.feed_text({"e": "kline", "E": 1700000000000})
    await until(lambda: manager.monitor.stats.message_count == 2)

    assert manager.handler.counts["trade"] == 1
    assert manager.handler.counts["other"] == 1

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_handle_frame_ends_session_on_close_and_error(transport) -> None:
    manager = make_manager(None)

    assert await manager.handle_frame(Frame(FrameType.CLOSE, "bye"), transport) is False
    assert await manager.handle_frame(Frame(FrameType.ERROR, "reset"), transport) is False
    assert await manager.handle_frame(Frame(FrameType.PONG, b""), transport) is True
    assert manager.shutdown_requested is False


# ---------------------------------------------------------------------------
# Reconnect loop
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reconnect_resyncs_desired_set_with_fresh_id(make_connector, until) -> None:
    first, second = FakeTransport(), FakeTransport()
    connector = make_connector(first, second)
    manager = make_manager(connector, topics=("a@trade", "b@trade"))
    task = asyncio.create_task(manager.run())

    await until(lambda: first.sent)
    first.feed_text({"result": None, "id": 1})
    await until(lambda: manager.reconciler.active == {"a@trade", "b@trade"})

    first.feed(Frame(FrameType.CLOSE, "server going away"))
    await until(lambda: second.sent)

    assert first.closed
    assert manager.reconciler.active == frozenset()
    assert len(second.sent) == 1
    resync = second.sent_json[0]
    assert resync["method"] == "SUBSCRIBE"
    assert set(resync["params"]) == {"a@trade", "b@trade"}
    assert resync["id"] == 2
    assert connector.endpoints == [ENDPOINT, ENDPOINT]

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_stale_response_after_reconnect_is_ignored(make_connector, until) -> None:
    first, second = FakeTransport(), FakeTransport()
    manager = make_manager(make_connector(first, second))
    task = asyncio.create_task(manager.run())

    await until(lambda: first.sent)
    first.feed(Frame(FrameType.ERROR, "connection reset"))
    await until(lambda: second.sent)

    second.feed_text({"error": {"code": -1, "msg": "late"}, "id": 1})
    second.feed_text({"result": None, "id": 2})
    await until(lambda: manager.reconciler.active == {"ethusdt@trade"})
    assert manager.reconciler.desired == {"ethusdt@trade"}

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_connect_failure_is_retried(transport, make_connector, until) -> None:
    connector = make_connector(OSError("connection refused"), TimeoutError(), transport)
    manager = make_manager(connector)
    task = asyncio.create_task(manager.run())

    await until(lambda: transport.sent)
    assert connector.endpoints == [ENDPOINT, ENDPOINT, ENDPOINT]
    assert manager.sessions == 1

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_commands_during_retry_delay_apply_on_next_resync(make_connector, until) -> None:
    first, second = FakeTransport(), FakeTransport()
    connector = make_connector(first, second)
    manager = make_manager(connector, reconnect_delay=0.3)
    task = asyncio.create_task(manager.run())

    await until(lambda: first.sent)
    first.feed(Frame(FrameType.CLOSE, ""))
    await until(lambda: first.closed)

    await manager.command_queue.put(Subscribe("btcusdt@trade"))
    await until(lambda: "btcusdt@trade" in manager.reconciler.desired)
    assert len(first.sent) == 1

    await until(lambda: second.sent)
    resync = second.sent_json[0]
    assert resync["params"] == ["btcusdt@trade", "ethusdt@trade"]
    assert resync["id"] == 3

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_quit_during_retry_delay_stops_client(transport, make_connector, until) -> None:
    connector = make_connector(transport)
    manager = make_manager(connector, reconnect_delay=30.0)
    task = asyncio.create_task(manager.run())

    await until(lambda: transport.sent)
    transport.feed(Frame(FrameType.CLOSE, ""))
    await until(lambda: transport.closed)

    await quit_and_wait(manager, task)
    assert connector.endpoints == [ENDPOINT]


@pytest.mark.asyncio
async def test_source_closed_ends_run(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)

    await manager.command_queue.put(SourceClosed())
    await asyncio.wait_for(task, timeout=2.0)

    assert manager.shutdown_requested
    assert transport.closed
    assert manager.command_task is None


@pytest.mark.asyncio
async def test_stop_enqueues_quit(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport))
    task = asyncio.create_task(manager.run())
    await until(lambda: transport.sent)

    await manager.stop()
    await asyncio.wait_for(task, timeout=2.0)
    assert manager.shutdown_requested


@pytest.mark.asyncio
async def test_listserver_while_disconnected_is_not_sent() -> None:
    manager = make_manager(None)

    assert await manager.handle_command(ListServer(), None) is True
    assert manager.reconciler.next_request_id == 1
    assert manager.reconciler.pending == {}


# ---------------------------------------------------------------------------
# Timers and scheduling
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unsolicited_pong_timer(transport, make_connector, until) -> None:
    manager = make_manager(make_connector(transport), pong_interval=0.05)
    task = asyncio.create_task(manager.run())

    await until(lambda: len(transport.pongs) >= 2)
    assert set(transport.pongs) == {b""}
    assert manager.monitor.pongs_sent >= 2

    await quit_and_wait(manager, task)


@pytest.mark.asyncio
async def test_stats_timer_reports(transport, make_connector, until, caplog) -> None:
    caplog.set_level(logging.INFO, logger="binance_stream.connections.monitor")
    manager = make_manager(make_connector(transport), stats_interval=0.05)
    task = asyncio.create_task(manager.run())

    await until(lambda: "Messages received" in caplog.text)

    await quit_and_wait(manager, task)


def test_next_ready_source_rotates() -> None:
    manager = make_manager(None)
    everything = set(EventSource)

    assert [manager.next_ready_source(everything) for _ in range(5)] == [
        EventSource.COMMAND,
        EventSource.FRAME,
        EventSource.STATS_TIMER,
        EventSource.PONG_TIMER,
        EventSource.COMMAND,
    ]


def test_next_ready_source_does_not_starve_frames() -> None:
    manager = make_manager(None)
    ready = {EventSource.COMMAND, EventSource.FRAME}

    picks = [manager.next_ready_source(ready) for _ in range(6)]
    assert picks.count(EventSource.FRAME) == 3
    assert picks.count(EventSource.COMMAND) == 3
    assert manager.next_ready_source(set()) is None
