import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger  # type: ignore[attr-defined]

LOG_FORMAT = "%(asctime)s - %(levelname)s:%(name)s:%(lineno)d:%(message)s"
JSON_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(lineno)d %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_formatter(json_format: bool = False) -> logging.Formatter:
    if json_format:
        return jsonlogger.JsonFormatter(JSON_LOG_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def daily_log_path(log_dir: Optional[str], filename_prefix: str) -> str:
    """Return ``<log_dir>/<prefix>_YYYYMMDD.log``, creating the directory (default ./logs)."""
    directory = Path(log_dir) if log_dir is not None else Path(os.getcwd()) / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    return str(directory / f"{filename_prefix}_{datetime.now():%Y%m%d}.log")


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    filename_prefix: str = "binance_stream",
    console: bool = True,
    file: bool = False,
    json_format: bool = False,
) -> None:
    """Configure the root logger for the stream client.

    Args:
        level: The logging level to use (default: logging.INFO)
        log_dir: Directory to store log files (default: ./logs)
        filename_prefix: Prefix for log filename (default: 'binance_stream')
        console: Whether to output logs to console (default: True)
        file: Whether to also write a daily log file (default: False)
        json_format: Emit one JSON object per record instead of plain text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = build_formatter(json_format)
    handlers: list[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler())

    log_file = daily_log_path(log_dir, filename_prefix) if file else None
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if log_file is not None:
        root_logger.info("Logging initialized - writing to %s", log_file)
