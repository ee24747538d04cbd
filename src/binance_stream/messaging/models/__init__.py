from binance_stream.messaging.models.events import (
    AccountUpdateEvent,
    AggTradeEvent,
    DomainEvent,
    OrderTradeUpdateEvent,
    TradeEvent,
    TradeLiteEvent,
    decode_event,
)
from binance_stream.messaging.models.messages import (
    ApiResponse,
    InboundMessage,
    StreamRequest,
    UnknownMessage,
    parse_frame,
)

__all__ = [
    "AccountUpdateEvent",
    "AggTradeEvent",
    "ApiResponse",
    "DomainEvent",
    "InboundMessage",
    "OrderTradeUpdateEvent",
    "StreamRequest",
    "TradeEvent",
    "TradeLiteEvent",
    "UnknownMessage",
    "decode_event",
    "parse_frame",
]
