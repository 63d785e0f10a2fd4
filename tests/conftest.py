"""Shared stub collaborators for holder tests."""
from __future__ import annotations

import json
import threading
import time
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from sbv2_tts.nlp.collaborators import LinguisticAnalyzer, SemanticEncoder, Tokenizer
from sbv2_tts.tts.errors import InferenceError, LoadError
from sbv2_tts.tts.holder import TTSModelHolder
from sbv2_tts.tts.runtime import InferenceRuntime


class StubAnalyzer(LinguisticAnalyzer):
    """
    One phoneme per character, framed by PAD.

    Every character of the text must itself be a phoneme symbol ("a", "b",
    "k", ...). ``result`` forces a fixed (phones, tones, word2ph) answer.
    """

    def __init__(self, result: Optional[Tuple[list, list, list]] = None):
        self.result = result
        self.calls: List[str] = []

    def g2p(self, text):
        self.calls.append(text)
        if self.result is not None:
            return self.result
        phones = ["_"] + list(text) + ["_"]
        return phones, [0] * len(phones), [1] * len(phones)


class StubTokenizer(Tokenizer):
    """CLS, one token per character, SEP."""

    def tokenize(self, text):
        ids = [1] + [10 + i for i in range(len(text))] + [2]
        return ids, [1] * len(ids)


class StubEncoder(SemanticEncoder):
    """Row i of the output is filled with the value i."""

    def __init__(self, dim: int = 4, drop_rows: int = 0):
        self.dim = dim
        self.drop_rows = drop_rows

    def predict(self, token_ids, attention_mask):
        rows = len(token_ids) - self.drop_rows
        return np.repeat(np.arange(rows, dtype=np.float32)[:, None], self.dim, axis=1)


class FakeSession:
    def __init__(self, tag: bytes):
        self.tag = tag
        self.active = 0
        self.max_active = 0


class FakeRuntime(InferenceRuntime):
    """
    Runtime double.

    ``load(b"bad")`` fails; ``run`` returns a [1, 1, samples] output filled
    with the first byte of the model bytes, so each model's audio is
    distinguishable. Tracks the peak number of concurrent runs per session.
    """
    name = "fake"

    def __init__(self, concurrent_safe: bool = False, delay: float = 0.0, samples: int = 8):
        self.concurrent_safe = concurrent_safe
        self.delay = delay
        self.samples = samples
        self.loads: List[bytes] = []
        self.runs: List[Dict[str, np.ndarray]] = []
        self._lock = threading.Lock()

    def load(self, model_bytes):
        if model_bytes == b"bad":
            raise LoadError("not a model")
        self.loads.append(model_bytes)
        return FakeSession(model_bytes)

    def run(self, session, inputs):
        if session.tag == b"explode":
            raise InferenceError("graph failed")
        with self._lock:
            session.active += 1
            session.max_active = max(session.max_active, session.active)
            self.runs.append(inputs)
        try:
            if self.delay:
                time.sleep(self.delay)
            value = float(session.tag[0])
            return {"output": np.full((1, 1, self.samples), value, dtype=np.float32)}
        finally:
            with self._lock:
                session.active -= 1


def style_json(rows) -> bytes:
    rows = [list(map(float, r)) for r in rows]
    return json.dumps({"shape": [len(rows), len(rows[0])], "data": rows}).encode("utf-8")


STYLE_ROWS = [
    [0.0, 0.0, 0.0],
    [1.0, 2.0, 3.0],
    [-1.0, 4.0, 0.5],
]


@pytest.fixture
def style_bytes() -> bytes:
    return style_json(STYLE_ROWS)


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def analyzer() -> StubAnalyzer:
    return StubAnalyzer()


@pytest.fixture
def holder(analyzer, runtime) -> TTSModelHolder:
    return TTSModelHolder(analyzer, StubTokenizer(), StubEncoder(), runtime)
