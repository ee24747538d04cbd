"""
Click CLI for the Binance stream client.

This module implements the `binance-stream` CLI tool with `run`, `stream` and
`user-data` subcommands.
"""

import asyncio
import logging
import sys
from typing import Any, Callable, Optional

import click
from pydantic import ValidationError

from binance_stream.common.logging import setup_logging
from binance_stream.config import StreamSettings
from binance_stream.config.settings import VALID_LOG_LEVELS
from binance_stream.config.enumerations import OverflowPolicy
from binance_stream.subscription.orchestrator import run_dynamic, run_fixed, run_user_data
from binance_stream.utils.helpers import parse_topics
from binance_stream.wiring import create_injector

def validate_topics(
    _ctx: click.Context, _param: click.Parameter, value: Optional[str]
) -> Optional[list[str]]:
    """Validate and parse comma-separated topics."""
    if value is None:
        return None

    topics = parse_topics(value)
    if not topics:
        raise click.BadParameter("At least one topic is required")

    return topics


def validate_log_level(
    _ctx: click.Context, _param: click.Parameter, value: Optional[str]
) -> Optional[str]:
    """Validate log level."""
    if value is None:
        return None

    value_upper = value.upper()
    if value_upper not in VALID_LOG_LEVELS:
        raise click.BadParameter(
            f"Invalid log level: '{value}'. "
            f"Valid levels: {', '.join(VALID_LOG_LEVELS)}"
        )
    return value_upper


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option(
            "--testnet/--mainnet",
            default=None,
            help="Use testnet endpoints. Default: mainnet (or BINANCE_STREAM_TESTNET)",
        ),
        click.option(
            "--log-level",
            default=None,
            callback=validate_log_level,
            help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
        ),
        click.option("--log-file", is_flag=True, default=False, help="Also write logs to ./logs"),
        click.option("--json-logs", is_flag=True, default=False, help="Emit JSON log lines"),
        click.option("--env-file", default=".env", help="Path to .env file. Default: .env"),
        click.option("--reconnect-delay", type=float, default=None, help="Seconds between reconnects"),
        click.option("--stats-interval", type=float, default=None, help="Seconds between stats lines"),
        click.option(
            "--pong-interval", type=float, default=None, help="Seconds between unsolicited pongs"
        ),
        click.option("--queue-size", type=int, default=None, help="Command queue capacity"),
        click.option(
            "--overflow",
            type=click.Choice([policy.value for policy in OverflowPolicy]),
            default=None,
            help="What to do with commands when the queue is full. Default: block",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_settings(env_file: str, **overrides: Any) -> StreamSettings:
    """Load settings from the environment and apply CLI overrides that were given."""
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return StreamSettings(_env_file=env_file, **values)  # type: ignore[call-arg]
    except ValidationError as e:
        raise click.BadParameter(str(e)) from None


def init_logging(log_level: str, log_file: bool, json_logs: bool) -> logging.Logger:
    setup_logging(level=getattr(logging, log_level), file=log_file, json_format=json_logs)
    return logging.getLogger(__name__)


def execute(logger: logging.Logger, coroutine: Any) -> None:
    try:
        asyncio.run(coroutine)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal - shutting down")
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        sys.exit(1)

    sys.exit(0)


@click.group()
@click.version_option(version="0.1.0", prog_name="binance-stream")
def cli() -> None:
    """Binance WebSocket stream client.

    \b
    Commands:
      run        Stream public topics, managed at runtime from stdin
      stream     Stream one symbol's trades through a fixed URL
      user-data  Stream account events using a listen key
    """
    pass


@cli.command()
@click.option(
    "--topics",
    default=None,
    callback=validate_topics,
    help="Comma-separated initial topics (e.g., ethusdt@trade,btcusdt@aggTrade)",
)
@common_options
def run(
    topics: Optional[list[str]],
    testnet: Optional[bool],
    log_level: Optional[str],
    log_file: bool,
    json_logs: bool,
    env_file: str,
    reconnect_delay: Optional[float],
    stats_interval: Optional[float],
    pong_interval: Optional[float],
    queue_size: Optional[int],
    overflow: Optional[str],
) -> None:
    """Stream public topics with runtime subscription management.

    Reads commands from stdin: addsub <stream>, delsub <stream>, list,
    listserver, help, quit.

    \b
    Example:
      binance-stream run --topics ethusdt@trade,btcusdt@trade --testnet
    """
    settings = build_settings(
        env_file,
        log_level=log_level,
        topics=topics,
        testnet=testnet,
        reconnect_delay=reconnect_delay,
        stats_interval=stats_interval,
        pong_interval=pong_interval,
        command_queue_size=queue_size,
        command_overflow=overflow,
    )
    logger = init_logging(settings.log_level, log_file, json_logs)

    logger.info("=" * 60)
    logger.info("Binance Public WebSocket Client (dynamic subscriptions) - Starting")
    logger.info("=" * 60)
    logger.info("  Endpoint:    %s", settings.spot_ws_url)
    logger.info("  Topics:      %s", ", ".join(settings.topics) or "(none)")
    logger.info(
        "  Queue:       %d (%s on overflow)",
        settings.command_queue_size,
        settings.command_overflow.value,
    )
    logger.info("=" * 60)

    execute(logger, run_dynamic(settings))


@cli.command()
@click.option("--symbol", default="ethusdt", help="Stream symbol. Default: ethusdt")
@common_options
def stream(
    symbol: str,
    testnet: Optional[bool],
    log_level: Optional[str],
    log_file: bool,
    json_logs: bool,
    env_file: str,
    reconnect_delay: Optional[float],
    stats_interval: Optional[float],
    pong_interval: Optional[float],
    queue_size: Optional[int],
    overflow: Optional[str],
) -> None:
    """Stream <symbol>@trade through a fixed URL.

    \b
    Example:
      binance-stream stream --symbol btcusdt
    """
    settings = build_settings(
        env_file,
        log_level=log_level,
        testnet=testnet,
        reconnect_delay=reconnect_delay,
        stats_interval=stats_interval,
        pong_interval=pong_interval,
        command_queue_size=queue_size,
        command_overflow=overflow,
    )
    logger = init_logging(settings.log_level, log_file, json_logs)
    logger.info("Starting fixed URL stream for %s@trade", symbol.lower())

    execute(logger, run_fixed(settings, symbol))


@cli.command(name="user-data")
@click.option(
    "--renew-interval",
    type=float,
    default=None,
    help="Seconds between listen key renewals. Default: 3300 (55 minutes)",
)
@common_options
def user_data(
    renew_interval: Optional[float],
    testnet: Optional[bool],
    log_level: Optional[str],
    log_file: bool,
    json_logs: bool,
    env_file: str,
    reconnect_delay: Optional[float],
    stats_interval: Optional[float],
    pong_interval: Optional[float],
    queue_size: Optional[int],
    overflow: Optional[str],
) -> None:
    """Stream futures account events (orders, fills, balances, positions).

    Requires BINANCE_API_KEY in the environment or the .env file.

    \b
    Example:
      binance-stream user-data --testnet
    """
    settings = build_settings(
        env_file,
        log_level=log_level,
        testnet=testnet,
        reconnect_delay=reconnect_delay,
        stats_interval=stats_interval,
        pong_interval=pong_interval,
        command_queue_size=queue_size,
        command_overflow=overflow,
        listen_key_renew_interval=renew_interval,
    )
    logger = init_logging(settings.log_level, log_file, json_logs)
    logger.info("Starting Binance user-data WebSocket client...")

    injector = create_injector(settings, env_file=env_file)
    execute(logger, run_user_data(injector, settings))


def main() -> None:
    """Entry point for the binance-stream CLI."""
    cli()


if __name__ == "__main__":
    main()
