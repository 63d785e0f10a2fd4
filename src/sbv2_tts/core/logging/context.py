"""
Logging state: request correlation and resolved configuration.

The request id lives in a ContextVar so that concurrent synthesis calls
running in different threads (or tasks) each tag their own log lines.
Everything else is process-wide module state set by ``configure_logging``.

Environment overrides (highest priority):
    SBV2_LOG_LEVEL          level 1-4 or a name
    SBV2_LOG_DIR            directory for the JSONL log
    SBV2_JSONL_FILE         JSONL file name
    SBV2_LOG_ROTATE_BYTES   rotate after this many bytes
    SBV2_LOG_ROTATE_BACKUP  rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("sbv2_request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, ``"-"`` outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(int(_current_level), "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _int_env(name: str, cfg: Dict[str, Any], key: str) -> None:
    raw = os.getenv(name)
    if not raw:
        return
    try:
        cfg[key] = int(raw)
    except ValueError:
        pass


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the ``logging`` section from settings and the environment.

    The settings file is taken from ``SBV2_SETTINGS`` (default
    ``config/settings.yaml``). A missing or unreadable file leaves the
    defaults in place; logging must come up before configuration errors
    can be reported.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SBV2_SETTINGS", "config/settings.yaml")
    try:
        from sbv2_tts.core.config import load_settings
        cfg.update(load_settings(settings_path).raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError, AttributeError):
        pass

    if os.getenv("SBV2_LOG_LEVEL"):
        cfg["level"] = os.environ["SBV2_LOG_LEVEL"]
    if os.getenv("SBV2_LOG_DIR"):
        cfg["log_dir"] = os.environ["SBV2_LOG_DIR"]
    if os.getenv("SBV2_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SBV2_JSONL_FILE"]
    _int_env("SBV2_LOG_ROTATE_BYTES", cfg, "rotate_max_bytes")
    _int_env("SBV2_LOG_ROTATE_BACKUP", cfg, "rotate_backup_count")

    return cfg
