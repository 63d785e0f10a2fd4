"""
Formatters for the console and JSONL handlers.

Console lines look like::

    14:30:05 [ INFO  ] (3f9c1a2b) synth_done model=amitaro phones=57 0.412s

JSONL records carry the same data in machine-readable form::

    {"ts": "...", "level": 2, "tag": "INFO", "message": "synth_done",
     "request_id": "3f9c1a2b", "seconds": 0.412, "extra": {"model": "amitaro"}}

Colors are disabled when stdout is not a TTY, when ``NO_COLOR`` is set,
or when ``SBV2_NO_COLOR=1``.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict


class Colors:
    """ANSI escape codes."""
    RESET = "\033[0m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.DIM,
}

# Fields that identify a voice model get their own color in console output.
_MODEL_KEYS = {"model", "ident", "models"}
# Fields that are sequence/tensor sizes.
_SHAPE_KEYS = {"phones", "tokens", "chars", "word2ph_sum", "shape", "samples"}


def supports_color() -> bool:
    """Whether ANSI colors should be written to stdout."""
    if os.getenv("SBV2_NO_COLOR", "0") == "1" or os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return sys.platform != "win32" or os.getenv("WT_SESSION") is not None


USE_COLORS = supports_color()


def get_tag_color(tag: str) -> str:
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)


def colorize(text: str, color: str) -> str:
    """Wrap ``text`` in ``color`` when colors are enabled."""
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


def _seconds_color(seconds: float) -> str:
    if seconds < 0.1:
        return Colors.GREEN
    if seconds < 1.0:
        return Colors.YELLOW
    return Colors.RED


class JsonlFormatter(logging.Formatter):
    """One JSON object per line, for the rotating file handler."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "logger": record.name,
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Compact human-readable line: time, tag, request id, message, fields."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            colorize(ts, Colors.DIM),
            colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(colorize(f"event={event}", Colors.BLUE))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for key, value in extra_data.items():
                parts.append(colorize(f"{key}={value}", self._field_color(key)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(colorize(f"{seconds:.3f}s", _seconds_color(seconds)))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str) -> str:
        if key in _MODEL_KEYS:
            return Colors.MAGENTA
        if key in _SHAPE_KEYS:
            return Colors.CYAN
        if key in {"error", "expected", "actual"}:
            return Colors.YELLOW
        return Colors.DIM
