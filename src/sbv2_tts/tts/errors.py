"""
Error taxonomy for the model holder.

Every failure surfaced by the holder is a ``TTSError`` carrying a stable
error code and a ``details`` dict with enough context (identifier,
expected/actual lengths) to diagnose the failure. Nothing in the holder
recovers silently: collaborator errors are wrapped once and re-raised,
alignment mismatches abort the request.

    TTSError
    ├── ModelNotFoundError       unknown identifier (recoverable by caller)
    ├── FormatError              malformed style table bytes
    ├── LoadError                inference session could not be created
    ├── AnalysisError            linguistic analyzer / symbol mapping failed
    ├── EncodingError            tokenizer or semantic encoder failed
    ├── AlignmentInvariantError  word2ph / sequence lengths disagree
    ├── StyleIndexError          style id outside the style table
    └── InferenceError           the runtime failed while running a graph
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Stable error codes, suitable for an API error payload."""
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    INVALID_FORMAT = "INVALID_FORMAT"
    LOAD_FAILED = "LOAD_FAILED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    ENCODING_FAILED = "ENCODING_FAILED"
    ALIGNMENT_INVARIANT = "ALIGNMENT_INVARIANT"
    INVALID_INPUT = "INVALID_INPUT"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class TTSError(Exception):
    """
    Base exception for holder errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Standardized error payload."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ModelNotFoundError(TTSError):
    """Raised when no loaded voice model has the requested identifier."""
    def __init__(self, ident: str):
        super().__init__(f"model not found: {ident}", ErrorCode.MODEL_NOT_FOUND, {"ident": ident})
        self.ident = ident


class FormatError(TTSError):
    """Raised when style-vector bytes cannot be parsed into a 2-D table."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_FORMAT, details)


class LoadError(TTSError):
    """Raised when the runtime cannot build a session from model bytes."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.LOAD_FAILED, details)


class AnalysisError(TTSError):
    """Raised when grapheme-to-phoneme analysis fails."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.ANALYSIS_FAILED, details)


class EncodingError(TTSError):
    """Raised when tokenization or semantic encoding fails."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.ENCODING_FAILED, details)


class AlignmentInvariantError(TTSError):
    """
    Raised when the analyzer's per-unit phoneme counts disagree with the
    text, the phoneme sequence or the embedding rows.

    This is a collaborator contract violation; the request is aborted rather
    than truncated or padded.
    """
    def __init__(self, message: str, expected: Any = None, actual: Any = None, **context: Any):
        details: Dict[str, Any] = {"expected": expected, "actual": actual}
        details.update(context)
        super().__init__(message, ErrorCode.ALIGNMENT_INVARIANT, details)
        self.expected = expected
        self.actual = actual


class StyleIndexError(TTSError):
    """Raised when a style id does not address a row of the style table."""
    def __init__(self, ident: str, style_id: int, num_styles: int):
        super().__init__(
            f"style id {style_id} out of range for {ident} ({num_styles} styles)",
            ErrorCode.INVALID_INPUT,
            {"ident": ident, "style_id": style_id, "num_styles": num_styles},
        )


class InferenceError(TTSError):
    """Raised when running a graph fails."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)
