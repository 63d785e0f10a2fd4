"""Tests for the phoneme inventory and id mapping."""
from __future__ import annotations

import pytest

from sbv2_tts.nlp.symbols import (
    LANGUAGE_ID_MAP,
    LANGUAGE_TONE_START_MAP,
    NUM_TONES,
    PAD,
    PUNCTUATION_SYMBOLS,
    SYMBOL_TO_ID,
    SYMBOLS,
    cleaned_text_to_sequence,
)
from sbv2_tts.tts.errors import AnalysisError, ErrorCode


class TestInventory:
    """Layout of the symbol table."""

    def test_pad_is_zero(self):
        assert SYMBOLS[0] == PAD
        assert SYMBOL_TO_ID[PAD] == 0

    def test_punctuation_at_end(self):
        assert SYMBOLS[-len(PUNCTUATION_SYMBOLS):] == PUNCTUATION_SYMBOLS

    def test_symbols_unique(self):
        assert len(SYMBOLS) == len(set(SYMBOLS))
        assert len(SYMBOLS) == 112

    def test_tone_offsets(self):
        assert LANGUAGE_TONE_START_MAP == {"ZH": 0, "JP": 6, "EN": 8}
        assert NUM_TONES == 12

    def test_language_ids(self):
        assert LANGUAGE_ID_MAP == {"ZH": 0, "JP": 1, "EN": 2}


class TestCleanedTextToSequence:
    """Symbol/tone/language mapping."""

    def test_japanese(self):
        phones, tones, langs = cleaned_text_to_sequence(["_", "k", "a", "_"], [0, 0, 1, 0], "JP")

        assert phones == [0, SYMBOL_TO_ID["k"], SYMBOL_TO_ID["a"], 0]
        assert tones == [6, 6, 7, 6]
        assert langs == [1, 1, 1, 1]

    def test_english_tone_offset(self):
        _, tones, langs = cleaned_text_to_sequence(["ah"], [3], "EN")
        assert tones == [11]
        assert langs == [2]

    def test_unknown_symbol(self):
        with pytest.raises(AnalysisError) as exc_info:
            cleaned_text_to_sequence(["_", "xx", "_"], [0, 0, 0])
        assert exc_info.value.code == ErrorCode.ANALYSIS_FAILED
        assert exc_info.value.details["position"] == 1

    def test_tone_out_of_range(self):
        with pytest.raises(AnalysisError):
            cleaned_text_to_sequence(["a"], [2], "JP")

    def test_unknown_language(self):
        with pytest.raises(AnalysisError):
            cleaned_text_to_sequence(["a"], [0], "KO")
