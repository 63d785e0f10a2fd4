"""
Style Tables and Style Blending.

A voice model ships a table of style vectors, one row per style id. Row 0
is the neutral style; every other row is a target style. A request picks a
target row and a weight and gets the neutral vector moved towards it:

    result = neutral + (table[style_id] - neutral) * weight

weight 0 gives the neutral style, weight 1 the target row, values above 1
exaggerate the style. Weights are not clamped.

Accepted serializations:
    JSON   {"shape": [styles, dim], "data": [[...], ...]}
    .npy   a NumPy array file (no pickled objects)
"""
from __future__ import annotations

import io
import json
from typing import Any

import numpy as np

from sbv2_tts.tts.errors import FormatError, StyleIndexError

_NPY_MAGIC = b"\x93NUMPY"

NEUTRAL_STYLE_ID = 0


def _from_json(raw: bytes) -> np.ndarray:
    try:
        doc: Any = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormatError(f"style vectors are not valid JSON: {exc}") from exc
    if not isinstance(doc, dict) or "data" not in doc:
        raise FormatError("style JSON must be an object with a 'data' field")

    try:
        table = np.asarray(doc["data"], dtype=np.float32)
    except (TypeError, ValueError) as exc:
        raise FormatError(f"style data is not a numeric matrix: {exc}") from exc

    shape = doc.get("shape")
    if shape is not None and (not isinstance(shape, list) or list(table.shape) != shape):
        raise FormatError(
            "style data does not match its declared shape",
            {"declared": shape, "actual": list(table.shape)},
        )
    return table


def _from_npy(raw: bytes) -> np.ndarray:
    try:
        table = np.load(io.BytesIO(raw), allow_pickle=False)
    except (ValueError, OSError, EOFError) as exc:
        raise FormatError(f"style vectors are not a valid .npy file: {exc}") from exc
    if not np.issubdtype(table.dtype, np.number) or np.iscomplexobj(table):
        raise FormatError("style table is not real-valued", {"dtype": str(table.dtype)})
    return table


def load_style(raw: bytes) -> np.ndarray:
    """
    Parse serialized style vectors into a ``[styles, dim]`` float32 table.

    Raises:
        FormatError: If the bytes are neither format, or the table is not a
            non-empty 2-D matrix.
    """
    if not raw:
        raise FormatError("style vectors are empty")
    raw = bytes(raw)
    table = _from_npy(raw) if raw.startswith(_NPY_MAGIC) else _from_json(raw)

    if table.ndim != 2:
        raise FormatError("style table must be 2-D", {"shape": list(table.shape)})
    if table.shape[0] < 1 or table.shape[1] < 1:
        raise FormatError("style table has no rows or no columns", {"shape": list(table.shape)})
    return np.ascontiguousarray(table, dtype=np.float32)


def blend_style(table: np.ndarray, style_id: int, weight: float, ident: str = "") -> np.ndarray:
    """
    Move the neutral row towards ``table[style_id]`` by ``weight``.

    Raises:
        StyleIndexError: If ``style_id`` does not address a row. Negative
            ids are rejected, not wrapped.
    """
    num_styles = table.shape[0]
    if not 0 <= style_id < num_styles:
        raise StyleIndexError(ident, style_id, num_styles)
    mean = table[NEUTRAL_STYLE_ID]
    target = table[style_id]
    return (mean + (target - mean) * np.float32(weight)).astype(np.float32)
