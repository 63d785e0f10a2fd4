"""Tests for logging color output."""
from __future__ import annotations

import io
import logging
import os
from unittest.mock import patch

import pytest

from sbv2_tts.core.logging import configure_logging, formatters, get_logger, success
from sbv2_tts.core.logging.formatters import (
    ColoredConsoleFormatter,
    Colors,
    colorize,
    get_tag_color,
    supports_color,
)


@pytest.fixture
def colors_on():
    original = formatters.USE_COLORS
    formatters.USE_COLORS = True
    yield
    formatters.USE_COLORS = original


def _record(**attrs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg="synth_done", args=(), exc_info=None,
    )
    record.tag = "INFO"
    record.request_id = "-"
    record.seconds = None
    record.event = None
    record.extra_data = None
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestColorSupport:
    """Test color support detection."""

    def test_project_env_disables_colors(self):
        """SBV2_NO_COLOR=1 disables colors."""
        with patch.dict(os.environ, {"SBV2_NO_COLOR": "1"}):
            assert supports_color() is False

    def test_no_color_standard_env(self):
        """NO_COLOR env var disables colors (standard)."""
        env = {k: v for k, v in os.environ.items() if k != "SBV2_NO_COLOR"}
        env["NO_COLOR"] = "1"
        with patch.dict(os.environ, env, clear=True):
            assert supports_color() is False

    def test_non_tty_disables_colors(self):
        env = {k: v for k, v in os.environ.items() if k not in ("SBV2_NO_COLOR", "NO_COLOR")}
        with patch.dict(os.environ, env, clear=True), patch("sys.stdout", io.StringIO()):
            assert supports_color() is False


class TestColorCodes:
    """Test ANSI color codes are applied correctly."""

    def test_colorize_with_colors_enabled(self, colors_on):
        result = colorize("test", Colors.RED)
        assert result == f"{Colors.RED}test{Colors.RESET}"

    def test_colorize_with_colors_disabled(self):
        original = formatters.USE_COLORS
        try:
            formatters.USE_COLORS = False
            assert colorize("test", Colors.RED) == "test"
        finally:
            formatters.USE_COLORS = original


class TestTagColors:
    """Test that tags get correct colors."""

    @pytest.mark.parametrize("tag,color", [
        ("SUCCESS", Colors.BRIGHT_GREEN),
        ("FAIL", Colors.BRIGHT_RED),
        ("ERROR", Colors.BRIGHT_RED),
        ("WARN", Colors.BRIGHT_YELLOW),
        ("INFO", Colors.BRIGHT_CYAN),
        ("DEBUG", Colors.GRAY),
    ])
    def test_tag_color(self, tag, color):
        assert get_tag_color(tag) == color

    def test_unknown_tag_is_white(self):
        assert get_tag_color("CUSTOM") == Colors.WHITE


class TestConsoleFormatter:
    """Test console line layout and field colors."""

    def test_plain_line_layout(self):
        original = formatters.USE_COLORS
        try:
            formatters.USE_COLORS = False
            line = ColoredConsoleFormatter().format(
                _record(request_id="abc123", extra_data={"model": "amitaro"}, seconds=0.25)
            )
        finally:
            formatters.USE_COLORS = original

        assert "[ INFO  ]" in line
        assert "(abc123)" in line
        assert "synth_done" in line
        assert "model=amitaro" in line
        assert line.endswith("0.250s")

    def test_fast_timing_is_green(self, colors_on):
        line = ColoredConsoleFormatter().format(_record(seconds=0.05))
        assert f"{Colors.GREEN}0.050s{Colors.RESET}" in line

    def test_slow_timing_is_red(self, colors_on):
        line = ColoredConsoleFormatter().format(_record(seconds=2.5))
        assert f"{Colors.RED}2.500s{Colors.RESET}" in line

    def test_model_field_is_magenta(self, colors_on):
        line = ColoredConsoleFormatter().format(_record(extra_data={"model": "amitaro"}))
        assert f"{Colors.MAGENTA}model=amitaro{Colors.RESET}" in line


class TestColoredOutput:
    """Test that colored output reaches stdout."""

    def test_output_no_ansi_when_not_tty(self):
        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            success(get_logger("test_no_color"), "plain success")

        output = captured.getvalue()
        assert "\033[" not in output
        assert "plain success" in output
