"""Tests for the holder error taxonomy."""
from __future__ import annotations

import pytest

from sbv2_tts.tts.errors import (
    AlignmentInvariantError,
    AnalysisError,
    EncodingError,
    ErrorCode,
    FormatError,
    InferenceError,
    LoadError,
    ModelNotFoundError,
    StyleIndexError,
    TTSError,
)


class TestErrorCodes:
    """Each error carries its stable code."""

    @pytest.mark.parametrize("exc, code", [
        (ModelNotFoundError("a"), ErrorCode.MODEL_NOT_FOUND),
        (FormatError("x"), ErrorCode.INVALID_FORMAT),
        (LoadError("x"), ErrorCode.LOAD_FAILED),
        (AnalysisError("x"), ErrorCode.ANALYSIS_FAILED),
        (EncodingError("x"), ErrorCode.ENCODING_FAILED),
        (AlignmentInvariantError("x", 1, 2), ErrorCode.ALIGNMENT_INVARIANT),
        (StyleIndexError("a", 5, 3), ErrorCode.INVALID_INPUT),
        (InferenceError("x"), ErrorCode.SYNTHESIS_FAILED),
    ])
    def test_code(self, exc, code):
        assert isinstance(exc, TTSError)
        assert exc.code == code

    def test_base_default_code(self):
        assert TTSError("boom").code == ErrorCode.INTERNAL_ERROR


class TestToDict:
    """Standardized error payload."""

    def test_payload_with_details(self):
        payload = ModelNotFoundError("amitaro").to_dict()
        assert payload == {
            "ok": False,
            "error": "MODEL_NOT_FOUND",
            "message": "model not found: amitaro",
            "details": {"ident": "amitaro"},
        }

    def test_payload_without_details(self):
        assert "details" not in LoadError("nope").to_dict()


class TestAlignmentInvariantError:
    def test_expected_actual_and_context(self):
        exc = AlignmentInvariantError("mismatch", expected=9, actual=11, check="word2ph_sum")
        assert exc.expected == 9
        assert exc.actual == 11
        assert exc.details == {"expected": 9, "actual": 11, "check": "word2ph_sum"}
        assert str(exc) == "mismatch"


class TestStyleIndexError:
    def test_details(self):
        exc = StyleIndexError("amitaro", -1, 7)
        assert exc.details == {"ident": "amitaro", "style_id": -1, "num_styles": 7}
        assert "-1" in exc.message
