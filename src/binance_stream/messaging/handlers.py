import logging
from collections import Counter
from typing import Dict, Protocol

from binance_stream.messaging.models.events import (
    AccountUpdateEvent,
    AggTradeEvent,
    DomainEvent,
    OrderTradeUpdateEvent,
    TradeEvent,
    TradeLiteEvent,
)
from binance_stream.messaging.models.messages import UnknownMessage

logger = logging.getLogger(__name__)


class EventProcessor(Protocol):
    name: str

    def process_event(self, event: DomainEvent) -> None: ...


class LoggingEventProcessor:
    """Default processor: writes each event to the log."""

    name = "logging"

    def process_event(self, event: DomainEvent) -> None:
        if isinstance(event, TradeEvent):
            logger.info(
                "Trade - Symbol: %s, Price: %s, Quantity: %s, Trade Time: %s",
                event.symbol,
                event.price,
                event.quantity,
                event.trade_time,
            )
        elif isinstance(event, AggTradeEvent):
            logger.debug(
                "AggTrade - Symbol: %s, Price: %s, Quantity: %s",
                event.symbol,
                event.price,
                event.quantity,
            )
        elif isinstance(event, OrderTradeUpdateEvent):
            order = event.order
            logger.info("Order Update - ID: %s, Status: %s", order.order_id, order.order_status)
            if order.is_terminal:
                logger.info("Order %s has been %s", order.order_id, order.order_status.lower())
        elif isinstance(event, TradeLiteEvent):
            logger.info(
                "Trade Lite - Trade ID: %s, Symbol: %s, Quantity: %s, Price: %s, Maker: %s",
                event.trade_id,
                event.symbol,
                event.quantity,
                event.price,
                event.is_maker,
            )
        elif isinstance(event, AccountUpdateEvent):
            logger.info("Account Update - Event Type: %s", event.account.reason)
            for balance in event.account.balances:
                logger.info(
                    "Balance - Asset: %s, Wallet: %s, Cross Wallet: %s, Balance Change: %s",
                    balance.asset,
                    balance.wallet_balance,
                    balance.cross_wallet_balance,
                    balance.balance_change,
                )
            for position in event.account.positions:
                logger.info(
                    "Position - Symbol: %s, Amount: %s, Entry Price: %s, Unrealized Profit: %s",
                    position.symbol,
                    position.position_amount,
                    position.entry_price,
                    position.unrealized_profit,
                )


class EventHandler:
    """Hands decoded domain events to the registered processors and counts them by type."""

    def __init__(self) -> None:
        default = LoggingEventProcessor()
        self.processors: Dict[str, EventProcessor] = {default.name: default}
        self.counts: Counter[str] = Counter()

    def add_processor(self, processor: EventProcessor) -> None:
        """Add new event processor"""
        self.processors.update({processor.name: processor})

    def remove_processor(self, processor: EventProcessor) -> None:
        """Remove event processor"""
        if processor.name in self.processors:
            del self.processors[processor.name]

    def handle_event(self, event: DomainEvent) -> None:
        self.counts[event.event_type.value] += 1
        for processor in list(self.processors.values()):
            try:
                processor.process_event(event)
            except Exception:
                logger.exception("Processor %s failed on %s event", processor.name, event.event_type.value)

    def handle_unknown(self, message: UnknownMessage) -> None:
        self.counts["other"] += 1
        logger.debug("Other message: %s", str(message.payload)[:200])

    def reset_counts(self) -> None:
        self.counts.clear()
