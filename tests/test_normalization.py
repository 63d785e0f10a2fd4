"""Tests for the default text normalizer."""
from __future__ import annotations

from sbv2_tts.utils.text import NORMALIZE_VERSION, normalize_text, preview


class TestNormalizeText:
    """normalize_text() steps."""

    def test_full_width_punctuation(self):
        assert normalize_text("こんにちは！　元気？") == "こんにちは! 元気?"

    def test_ideographic_punctuation(self):
        assert normalize_text("はい、そうです。") == "はい,そうです."

    def test_brackets_become_quotes(self):
        assert normalize_text("「本」") == "'本'"

    def test_ellipsis(self):
        assert normalize_text("えっと…") == "えっと..."

    def test_disallowed_characters_dropped(self):
        assert normalize_text("猫😺です#") == "猫です"

    def test_whitespace_collapsed(self):
        assert normalize_text("  a \t b　 ") == "a b"

    def test_full_width_ascii(self):
        assert normalize_text("ＡＢＣ１２３") == "ABC123"

    def test_idempotent(self):
        once = normalize_text("「テスト」！？")
        assert normalize_text(once) == once

    def test_empty(self):
        assert normalize_text("") == ""

    def test_version(self):
        assert NORMALIZE_VERSION == "v1"


class TestPreview:
    def test_short_text_unchanged(self):
        assert preview("abc", 10) == "abc"

    def test_truncated(self):
        assert preview("abcdef", 3) == "abc…"

    def test_zero_limit_disables(self):
        assert preview("abcdef", 0) == "abcdef"
