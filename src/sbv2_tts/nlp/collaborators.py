"""
Collaborator Interfaces for the Model Holder.

The holder orchestrates three external pieces it does not implement itself:

    LinguisticAnalyzer   normalized text -> (phones, tones, word2ph)
    Tokenizer            normalized text -> (token_ids, attention_mask)
    SemanticEncoder      (token_ids, attention_mask) -> [tokens, dim] float32

Concrete implementations shipped here:
    - CharTokenizer: HuggingFace ``tokenizers`` loaded from tokenizer.json
      bytes, encoding the text one character at a time so that token i+1
      corresponds to character i (position 0 is CLS, the last is SEP).
    - OnnxBertEncoder: a BERT/DeBERTa ONNX graph run through an
      InferenceRuntime.

The grapheme-to-phoneme analyzer is always external; it is plugged in by
object or by a ``module:attr`` entrypoint in settings.yaml.
"""
from __future__ import annotations

import importlib
import threading
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from sbv2_tts.core.logging import debug, get_logger
from sbv2_tts.tts.errors import AnalysisError, EncodingError, TTSError
from sbv2_tts.tts.runtime import InferenceRuntime

_LOG = get_logger("sbv2-tts.nlp")

CLS_TOKEN_ID = 1
SEP_TOKEN_ID = 2


class LinguisticAnalyzer:
    """
    Grapheme-to-phoneme converter.

    ``g2p`` receives normalized text and returns:
        phones:  phoneme symbols from sbv2_tts.nlp.symbols, framed by PAD
        tones:   one tone per phoneme, relative to ``language``
        word2ph: phonemes per text unit, one entry per character plus the
                 two frame positions

    Implementations raise AnalysisError on failure.
    """
    language: str = "JP"

    def g2p(self, text: str) -> Tuple[List[str], List[int], List[int]]:
        raise NotImplementedError


class Tokenizer:
    """Subword tokenizer feeding the semantic encoder."""

    def tokenize(self, text: str) -> Tuple[List[int], List[int]]:
        raise NotImplementedError


class SemanticEncoder:
    """Produces one embedding row per token."""

    def predict(self, token_ids: Sequence[int], attention_mask: Sequence[int]) -> np.ndarray:
        raise NotImplementedError


class CharTokenizer(Tokenizer):
    """
    Per-character tokenizer over a HuggingFace tokenizer.json.

    Each character is encoded on its own without special tokens, then the
    whole sequence is framed by CLS and SEP. Characters the vocabulary
    cannot represent still map to the unknown token, so for the usual
    character-level Japanese vocabularies one character yields one token.
    """

    def __init__(self, tokenizer: Any):
        self._tokenizer = tokenizer

    @classmethod
    def from_bytes(cls, tokenizer_bytes: bytes) -> "CharTokenizer":
        """
        Raises:
            EncodingError: If the bytes are not a valid tokenizer.json.
        """
        from tokenizers import Tokenizer as HFTokenizer

        try:
            tokenizer = HFTokenizer.from_str(bytes(tokenizer_bytes).decode("utf-8"))
        except Exception as exc:
            raise EncodingError(f"cannot load tokenizer: {exc}", {"bytes": len(tokenizer_bytes)}) from exc
        return cls(tokenizer)

    def tokenize(self, text: str) -> Tuple[List[int], List[int]]:
        token_ids = [CLS_TOKEN_ID]
        try:
            for ch in text:
                token_ids.extend(self._tokenizer.encode(ch, add_special_tokens=False).ids)
        except Exception as exc:
            raise EncodingError(f"tokenization failed: {exc}", {"chars": len(text)}) from exc
        token_ids.append(SEP_TOKEN_ID)
        return token_ids, [1] * len(token_ids)


class OnnxBertEncoder(SemanticEncoder):
    """
    Semantic encoder backed by an ONNX BERT graph.

    Graph contract:
        inputs:  input_ids [1, tokens] int64, attention_mask [1, tokens] int64
        output:  output [tokens, dim] float32 (a leading batch axis is dropped)
    """

    def __init__(self, runtime: InferenceRuntime, session: Any):
        self.runtime = runtime
        self.session = session
        self._guard: Optional[threading.Lock] = None if runtime.concurrent_safe else threading.Lock()

    @classmethod
    def from_bytes(cls, runtime: InferenceRuntime, model_bytes: bytes) -> "OnnxBertEncoder":
        return cls(runtime, runtime.load(model_bytes))

    def predict(self, token_ids: Sequence[int], attention_mask: Sequence[int]) -> np.ndarray:
        if len(token_ids) != len(attention_mask):
            raise EncodingError(
                "token ids and attention mask differ in length",
                {"token_ids": len(token_ids), "attention_mask": len(attention_mask)},
            )
        inputs = {
            "input_ids": np.asarray(token_ids, dtype=np.int64).reshape(1, -1),
            "attention_mask": np.asarray(attention_mask, dtype=np.int64).reshape(1, -1),
        }
        try:
            if self._guard is None:
                outputs = self.runtime.run(self.session, inputs)
            else:
                with self._guard:
                    outputs = self.runtime.run(self.session, inputs)
        except TTSError as exc:
            raise EncodingError(f"semantic encoder failed: {exc.message}", exc.details) from exc

        if "output" not in outputs:
            raise EncodingError("semantic encoder returned no 'output' tensor", {"outputs": sorted(outputs)})
        emb = np.asarray(outputs["output"], dtype=np.float32)
        if emb.ndim == 3 and emb.shape[0] == 1:
            emb = emb[0]
        if emb.ndim != 2:
            raise EncodingError("semantic encoder output must be 2-D", {"shape": list(emb.shape)})
        debug(_LOG, "bert_encoded", tokens=len(token_ids), shape=list(emb.shape))
        return emb


def load_entrypoint(entrypoint: str) -> Any:
    """
    Resolve ``"package.module:attr"`` to the named attribute.

    Raises:
        ValueError: If the string has no ``:`` separator.
        ImportError / AttributeError: If the target does not exist.
    """
    if ":" not in entrypoint:
        raise ValueError(f"entrypoint must look like 'module:attr', got {entrypoint!r}")
    module_name, attr = entrypoint.split(":", 1)
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def build_analyzer(entrypoint: str, options: Optional[dict] = None) -> LinguisticAnalyzer:
    """
    Instantiate the analyzer named by ``entrypoint``.

    The target may be a class or factory function; it is called with
    ``options`` as keyword arguments. The result only needs a ``g2p`` method.
    """
    factory = load_entrypoint(entrypoint)
    analyzer = factory(**(options or {}))
    if not callable(getattr(analyzer, "g2p", None)):
        raise AnalysisError(
            f"{entrypoint} did not produce an object with a g2p() method",
            {"entrypoint": entrypoint, "type": type(analyzer).__name__},
        )
    return analyzer
