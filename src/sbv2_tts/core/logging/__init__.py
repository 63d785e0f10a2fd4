"""
Structured logging for sbv2-tts.

Usage:
    from sbv2_tts.core.logging import get_logger, info, verbose, error

    log = get_logger("sbv2-tts.holder")
    info(log, "model_loaded", model="amitaro", styles=7, seconds=1.92)
    verbose(log, "aligned", phones=57, word2ph_sum=57)

Console output is colored when possible; when ``logging.log_dir`` (or
``SBV2_LOG_DIR``) is set, every record is also appended to a rotating
JSONL file. Messages are filtered by the numeric level (see levels.py)
before they reach the stdlib machinery.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level
from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import ColoredConsoleFormatter, Colors, JsonlFormatter, supports_color


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install the console (and optional JSONL) handlers on the root logger.

    Args:
        level: Override for the configured level.
        force: Reconfigure even if logging is already set up.
    """
    from . import formatters

    if is_configured() and not force:
        return

    formatters.USE_COLORS = supports_color()

    log_config = read_logging_config()
    set_log_config(log_config)

    current_level = coerce_level(level if level is not None else log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG - 10)
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(current_level, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Path(log_dir) / str(log_config.get("jsonl_file", "sbv2-tts.jsonl")),
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(logging.DEBUG - 10)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any
) -> None:
    if numeric_level > get_level():
        return

    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = "sbv2-tts") -> logging.Logger:
    """Get a named logger, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _log(logger, logging.DEBUG - 5, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
