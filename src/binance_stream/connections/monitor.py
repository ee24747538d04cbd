import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from binance_stream.config.enumerations import EventSource
from binance_stream.utils.helpers import format_uptime

logger = logging.getLogger(__name__)

STATS_INTERVAL_SECONDS = 5.0
UNSOLICITED_PONG_INTERVAL_SECONDS = 180.0
MIN_ELAPSED_SECONDS = 1e-3


@dataclass
class SessionStats:
    started_at: float
    message_count: int = 0
    last_message_at: Optional[float] = None

    def elapsed(self, now: float) -> float:
        return max(now - self.started_at, 0.0)

    def rate(self, now: float) -> float:
        elapsed = self.elapsed(now)
        if elapsed < MIN_ELAPSED_SECONDS:
            return 0.0
        return self.message_count / elapsed


@dataclass
class Timer:
    interval: float
    next_at: float = field(default=0.0)

    def due(self, now: float) -> bool:
        return now >= self.next_at

    def advance(self, now: float) -> None:
        """Schedule the next tick; missed ticks are skipped rather than replayed."""
        self.next_at += self.interval
        if self.next_at <= now:
            self.next_at = now + self.interval


class StreamMonitor:
    """Per-session throughput statistics and the unsolicited pong cadence.

    Both timers first fire one interval after ``start_session``.
    """

    def __init__(
        self,
        stats_interval: float = STATS_INTERVAL_SECONDS,
        pong_interval: float = UNSOLICITED_PONG_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.clock = clock
        now = clock()
        self.stats_timer = Timer(stats_interval, now + stats_interval)
        self.pong_timer = Timer(pong_interval, now + pong_interval)
        self.stats = SessionStats(started_at=now)
        self.pongs_sent = 0

    def start_session(self) -> None:
        now = self.clock()
        self.stats = SessionStats(started_at=now)
        self.stats_timer.next_at = now + self.stats_timer.interval
        self.pong_timer.next_at = now + self.pong_timer.interval

    def record_message(self) -> None:
        now = self.clock()
        if self.stats.last_message_at is not None:
            logger.debug("Time since last message: %.6fs", now - self.stats.last_message_at)
        self.stats.last_message_at = now
        self.stats.message_count += 1

    def due_timers(self) -> List[EventSource]:
        now = self.clock()
        due = []
        if self.stats_timer.due(now):
            due.append(EventSource.STATS_TIMER)
        if self.pong_timer.due(now):
            due.append(EventSource.PONG_TIMER)
        return due

    def seconds_until_next_tick(self) -> float:
        next_at = min(self.stats_timer.next_at, self.pong_timer.next_at)
        return max(next_at - self.clock(), 0.0)

    def report_stats(self, extra: str = "") -> float:
        """Log message count and throughput since the session started. Returns the rate."""
        now = self.clock()
        self.stats_timer.advance(now)
        rate = self.stats.rate(now)
        logger.info(
            "Messages received: %d, Frequency: %.2f msg/s, Uptime: %s%s",
            self.stats.message_count,
            rate,
            format_uptime(self.stats.elapsed(now)),
            extra,
        )
        return rate

    def pong_sent(self) -> None:
        self.pong_timer.advance(self.clock())
        self.pongs_sent += 1
        logger.debug("Sending unsolicited pong heartbeat")
