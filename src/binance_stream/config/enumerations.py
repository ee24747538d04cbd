import logging
from enum import Enum

logger = logging.getLogger(__name__)


class RequestMethod(str, Enum):
    """Outbound request methods understood by the stream service."""

    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    LIST_SUBSCRIPTIONS = "LIST_SUBSCRIPTIONS"


class RequestKind(Enum):
    """Kind of an in-flight request awaiting correlation by id."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    LIST_SERVER = "list_server"


class FrameType(Enum):
    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"
    ERROR = "error"


class EventSource(Enum):
    """Event sources multiplexed by the connection event loop, in service order."""

    COMMAND = "command"
    FRAME = "frame"
    STATS_TIMER = "stats_timer"
    PONG_TIMER = "pong_timer"


class EventType(str, Enum):
    """Discriminator values carried in the ``e`` field of domain events."""

    TRADE = "trade"
    AGG_TRADE = "aggTrade"
    ORDER_TRADE_UPDATE = "ORDER_TRADE_UPDATE"
    TRADE_LITE = "TRADE_LITE"
    ACCOUNT_UPDATE = "ACCOUNT_UPDATE"


class OverflowPolicy(str, Enum):
    """What the command producer does when the command queue is full."""

    BLOCK = "block"
    DROP = "drop"
