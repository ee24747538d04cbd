"""Domain event models, keyed by the ``e`` discriminator on the wire.

Binance uses single-letter keys; models expose readable names and keep the
wire keys as aliases. Inbound models allow extra fields so new server fields
don't break parsing.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from binance_stream.config.enumerations import EventType

logger = logging.getLogger(__name__)

TERMINAL_ORDER_STATUSES = frozenset({"FILLED", "CANCELED", "REJECTED", "EXPIRED"})


class BaseEvent(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="allow",
    )

    event_type: EventType = Field(alias="e", description="Event discriminator")
    event_time: int = Field(alias="E", description="Event time in epoch milliseconds")


class TradeEvent(BaseEvent):
    """Public ``<symbol>@trade`` stream."""

    symbol: str = Field(alias="s")
    trade_id: int = Field(alias="t")
    price: Decimal = Field(alias="p")
    quantity: Decimal = Field(alias="q")
    buyer_order_id: Optional[int] = Field(default=None, alias="b")
    seller_order_id: Optional[int] = Field(default=None, alias="a")
    trade_time: int = Field(alias="T")
    is_buyer_maker: bool = Field(alias="m")


class AggTradeEvent(BaseEvent):
    """Public ``<symbol>@aggTrade`` stream."""

    symbol: str = Field(alias="s")
    agg_trade_id: int = Field(alias="a")
    price: Decimal = Field(alias="p")
    quantity: Decimal = Field(alias="q")
    first_trade_id: int = Field(alias="f")
    last_trade_id: int = Field(alias="l")
    trade_time: int = Field(alias="T")
    is_buyer_maker: bool = Field(alias="m")


class OrderDetail(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    symbol: Optional[str] = Field(default=None, alias="s")
    order_id: int = Field(alias="i")
    order_status: str = Field(alias="X")

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_ORDER_STATUSES


class OrderTradeUpdateEvent(BaseEvent):
    """User-data stream order update."""

    order: OrderDetail = Field(alias="o")


class TradeLiteEvent(BaseEvent):
    """User-data stream lightweight fill notification."""

    trade_id: int = Field(alias="t")
    symbol: str = Field(alias="s")
    quantity: Decimal = Field(alias="q")
    price: Decimal = Field(alias="p")
    is_maker: bool = Field(alias="m")


class Balance(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    asset: str = Field(alias="a")
    wallet_balance: Decimal = Field(alias="wb")
    cross_wallet_balance: Decimal = Field(alias="cw")
    balance_change: Decimal = Field(alias="bc")


class Position(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    symbol: str = Field(alias="s")
    position_amount: Decimal = Field(alias="pa")
    entry_price: Decimal = Field(alias="ep")
    accumulated_realized: Optional[Decimal] = Field(default=None, alias="cr")
    unrealized_profit: Decimal = Field(alias="up")
    margin_type: Optional[str] = Field(default=None, alias="mt")
    isolated_wallet: Optional[Decimal] = Field(default=None, alias="iw")
    position_side: Optional[str] = Field(default=None, alias="ps")
    margin_asset: Optional[str] = Field(default=None, alias="ma")
    break_even_price: Optional[Decimal] = Field(default=None, alias="bep")


class AccountInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    reason: str = Field(alias="m", description="Event reason type, e.g. ORDER or FUNDING_FEE")
    balances: List[Balance] = Field(default_factory=list, alias="B")
    positions: List[Position] = Field(default_factory=list, alias="P")


class AccountUpdateEvent(BaseEvent):
    """User-data stream balance/position update."""

    account: AccountInfo = Field(alias="a")


DomainEvent = Union[
    TradeEvent,
    AggTradeEvent,
    OrderTradeUpdateEvent,
    TradeLiteEvent,
    AccountUpdateEvent,
]

EVENT_MODELS: Dict[EventType, Type[BaseEvent]] = {
    EventType.TRADE: TradeEvent,
    EventType.AGG_TRADE: AggTradeEvent,
    EventType.ORDER_TRADE_UPDATE: OrderTradeUpdateEvent,
    EventType.TRADE_LITE: TradeLiteEvent,
    EventType.ACCOUNT_UPDATE: AccountUpdateEvent,
}


def decode_event(raw: Dict[str, Any]) -> Optional[DomainEvent]:
    """Decode a tagged domain event, returning None for unknown or invalid payloads."""
    tag = raw.get("e")
    try:
        event_type = EventType(tag)
    except ValueError:
        logger.debug("Unrecognized event type: %s", tag)
        return None

    try:
        return EVENT_MODELS[event_type].model_validate(raw)  # type: ignore[return-value]
    except ValidationError as e:
        logger.warning("Failed to parse %s event: %s", tag, e)
        return None
