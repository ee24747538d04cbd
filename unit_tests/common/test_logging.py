"""Tests for logging setup."""

import json
import logging
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger  # type: ignore[attr-defined]

from binance_stream.common.logging import setup_logging


@contextmanager
def isolated_root_logger():
    """Undo setup_logging's changes to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield root
    finally:
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)


def test_console_logging_uses_plain_format() -> None:
    with isolated_root_logger() as root:
        setup_logging(level=logging.DEBUG)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert "%(lineno)d" in root.handlers[0].formatter._fmt  # type: ignore[union-attr]


def test_file_logging_writes_json_lines(tmp_path) -> None:
    with isolated_root_logger() as root:
        setup_logging(log_dir=str(tmp_path), console=False, file=True, json_format=True)
        assert isinstance(root.handlers[0].formatter, jsonlogger.JsonFormatter)

        logging.getLogger("binance_stream.test").info("Listen key renewed successfully.")
        for handler in root.handlers:
            handler.flush()

    (log_file,) = tmp_path.glob("binance_stream_*.log")
    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert records[-1]["message"] == "Listen key renewed successfully."
    assert records[-1]["name"] == "binance_stream.test"
