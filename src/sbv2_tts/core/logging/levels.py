"""
Numeric log levels for sbv2-tts.

Four verbosity steps are used instead of the stdlib names:

    1 = MINIMAL  - model load/unload and failures only
    2 = NORMAL   - one line per synthesis request (default)
    3 = VERBOSE  - per-stage timings (analyze, encode, align, infer)
    4 = DEBUG    - tensor shapes and collaborator outputs

Each level maps onto a stdlib level so handlers can filter records:

    MINIMAL -> WARNING, NORMAL -> INFO, VERBOSE -> DEBUG, DEBUG -> 5
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Verbosity levels, higher is chattier."""
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3
    DEBUG = 4


LEVEL_MAP = {
    LogLevel.MINIMAL: logging.WARNING,
    LogLevel.NORMAL: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG - 5,
}

LEVEL_NAMES = {level.value: level.name for level in LogLevel}

_NAME_ALIASES = {
    "TRACE": LogLevel.DEBUG,
    "CRITICAL": LogLevel.MINIMAL,
    "ERROR": LogLevel.MINIMAL,
    "WARNING": LogLevel.MINIMAL,
    "WARN": LogLevel.MINIMAL,
    "INFO": LogLevel.NORMAL,
}


def coerce_level(value: Any) -> LogLevel:
    """
    Turn a config or env value into a LogLevel.

    Accepts a LogLevel, an int 1-4, a stdlib level int (``logging.INFO``),
    a level name in any case, or a numeric string. Anything unparseable
    falls back to NORMAL.

    Examples:
        >>> coerce_level("verbose")
        <LogLevel.VERBOSE: 3>
        >>> coerce_level(logging.WARNING)
        <LogLevel.MINIMAL: 1>
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, bool):
        return LogLevel.NORMAL

    if isinstance(value, int):
        if 1 <= value <= 4:
            return LogLevel(value)
        if value >= logging.WARNING:
            return LogLevel.MINIMAL
        if value >= logging.INFO:
            return LogLevel.NORMAL
        return LogLevel.DEBUG

    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            return coerce_level(int(name))
        if name in LogLevel.__members__:
            return LogLevel[name]
        return _NAME_ALIASES.get(name, LogLevel.NORMAL)

    return LogLevel.NORMAL
