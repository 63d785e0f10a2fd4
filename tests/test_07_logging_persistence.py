"""Tests for the rotating JSONL log file."""
from __future__ import annotations

import json
import logging

from sbv2_tts.core.logging import configure_logging, get_logger, info, set_request_id


def test_logging_jsonl_persistence(tmp_path, monkeypatch):
    monkeypatch.setenv("SBV2_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("SBV2_JSONL_FILE", "test.jsonl")

    try:
        configure_logging(level=2, force=True)
        log = get_logger("test")
        set_request_id("rid-1")
        info(log, "hello", event="logging_test", model="amitaro", seconds=0.5)

        for handler in logging.getLogger().handlers:
            handler.flush()

        log_path = tmp_path / "test.jsonl"
        assert log_path.exists()

        payload = json.loads(log_path.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert payload["message"] == "hello"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "logging_test"
        assert payload["seconds"] == 0.5
        assert payload["tag"] == "INFO"
        assert payload["extra"] == {"model": "amitaro"}
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("SBV2_LOG_DIR")
        configure_logging(level=2, force=True)


def test_records_below_level_are_not_persisted(tmp_path, monkeypatch):
    monkeypatch.setenv("SBV2_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("SBV2_JSONL_FILE", "quiet.jsonl")

    try:
        configure_logging(level=1, force=True)
        info(get_logger("test"), "hidden")

        for handler in logging.getLogger().handlers:
            handler.flush()

        assert not (tmp_path / "quiet.jsonl").exists()
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("SBV2_LOG_DIR")
        configure_logging(level=2, force=True)
