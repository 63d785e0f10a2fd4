"""
Feature Alignment: text to VITS2 input sequences.

The semantic encoder produces one embedding row per token, and tokens are
one per character (plus CLS/SEP). The VITS2 graph wants one embedding
column per *phoneme position*. ``word2ph`` from the analyzer bridges the
two: entry i says how many phonemes text unit i produced.

Pipeline:
    text
      └─ normalize
           ├─ analyzer.g2p ─> phones, tones, word2ph
           │     └─ symbol ids ─> intersperse 0 ─> 2n+1 positions
           │     └─ word2ph: double every entry, first entry +1
           └─ tokenizer ─> encoder ─> [tokens, dim]
                 └─ repeat row i word2ph[i] times ─> [dim, 2n+1]

Why the word2ph adjustment works: interspersing puts a blank before every
phoneme and one at the end. Each unit now covers twice its phonemes, and
the trailing blank is charged to the first unit, so the adjusted counts
sum to exactly 2n+1.

Invariants (AlignmentInvariantError on violation, never truncate or pad):
    len(phones) == len(tones)
    word2ph entries are non-negative integers
    len(word2ph) == characters in normalized text + 2
    sum(adjusted word2ph) == len(interspersed phones)
    embedding rows >= len(word2ph)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

import numpy as np

from sbv2_tts.core.logging import debug, get_logger, verbose
from sbv2_tts.nlp.collaborators import LinguisticAnalyzer, SemanticEncoder, Tokenizer
from sbv2_tts.nlp.symbols import cleaned_text_to_sequence
from sbv2_tts.tts.errors import AlignmentInvariantError, AnalysisError, EncodingError, TTSError
from sbv2_tts.utils.text import normalize_text
from sbv2_tts.utils.timeit import timeit

_LOG = get_logger("sbv2-tts.alignment")


@dataclass
class AlignedFeatures:
    """
    Inputs for one synthesis call.

    Attributes:
        bert_ori: float32 [dim, phones] embedding matrix
        phones / tones / lang_ids: int sequences, all of length ``phones``
        word2ph: adjusted per-unit phoneme counts
        text: the normalized text the features were derived from
    """
    bert_ori: np.ndarray
    phones: List[int]
    tones: List[int]
    lang_ids: List[int]
    word2ph: List[int]
    text: str

    def as_tuple(self) -> Tuple[np.ndarray, List[int], List[int], List[int]]:
        return self.bert_ori, self.phones, self.tones, self.lang_ids


def intersperse(seq: Sequence[int], item: int = 0) -> List[int]:
    """
    Put ``item`` before, between and after the elements of ``seq``.

        >>> intersperse([5, 6, 7])
        [0, 5, 0, 6, 0, 7, 0]
    """
    result = [item] * (len(seq) * 2 + 1)
    result[1::2] = seq
    return result


def adjust_word2ph(word2ph: Sequence[int]) -> List[int]:
    """Scale per-unit counts to interspersed positions (double, first +1)."""
    adjusted = [int(n) * 2 for n in word2ph]
    if adjusted:
        adjusted[0] += 1
    return adjusted


def expand_features(embeddings: np.ndarray, reps: Sequence[int]) -> np.ndarray:
    """
    Repeat row i of ``embeddings`` ``reps[i]`` times and return [dim, sum(reps)].

    Rows past ``len(reps)`` (e.g. a surplus SEP row) are not used.
    """
    total = int(sum(reps))
    out = np.empty((total, embeddings.shape[1]), dtype=np.float32)
    pos = 0
    for i, n in enumerate(reps):
        out[pos:pos + n] = embeddings[i]
        pos += n
    return out.T


def _check_counts(word2ph: Sequence[object]) -> List[int]:
    """Per-unit phoneme counts must be non-negative integers."""
    counts: List[int] = []
    for pos, n in enumerate(word2ph):
        if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
            raise AlignmentInvariantError(
                "word2ph entries must be integers",
                expected="int", actual=repr(n), check="word2ph_type", position=pos,
            )
        if n < 0:
            raise AlignmentInvariantError(
                "word2ph entries must not be negative",
                expected=">= 0", actual=int(n), check="word2ph_negative", position=pos,
            )
        counts.append(int(n))
    return counts


class FeatureAligner:
    """
    Runs normalizer, analyzer, tokenizer and encoder and aligns their output.

    Stateless apart from its collaborators; safe to share between threads as
    long as the collaborators are.
    """

    def __init__(
        self,
        analyzer: LinguisticAnalyzer,
        tokenizer: Tokenizer,
        encoder: SemanticEncoder,
        normalizer: Callable[[str], str] = normalize_text,
    ):
        self.analyzer = analyzer
        self.tokenizer = tokenizer
        self.encoder = encoder
        self.normalizer = normalizer

    @property
    def language(self) -> str:
        return getattr(self.analyzer, "language", "JP")

    def _analyze(self, text: str) -> Tuple[List[str], List[int], List[int]]:
        try:
            phones, tones, word2ph = self.analyzer.g2p(text)
        except TTSError:
            raise
        except Exception as exc:
            raise AnalysisError(f"g2p failed: {exc}", {"chars": len(text)}) from exc
        return list(phones), [int(t) for t in tones], list(word2ph)

    def _encode(self, text: str) -> np.ndarray:
        try:
            token_ids, attention_mask = self.tokenizer.tokenize(text)
            emb = self.encoder.predict(token_ids, attention_mask)
        except TTSError:
            raise
        except Exception as exc:
            raise EncodingError(f"semantic encoding failed: {exc}", {"chars": len(text)}) from exc
        emb = np.asarray(emb, dtype=np.float32)
        if emb.ndim != 2:
            raise EncodingError("embeddings must be [tokens, dim]", {"shape": list(emb.shape)})
        return emb

    def align(self, text: str) -> AlignedFeatures:
        """
        Derive aligned VITS2 inputs from raw ``text``.

        Raises:
            AnalysisError: The analyzer failed or emitted unknown symbols.
            EncodingError: The tokenizer or encoder failed.
            AlignmentInvariantError: The sequences disagree in length.
        """
        norm = self.normalizer(text)

        with timeit("g2p") as t_g2p:
            phone_syms, raw_tones, word2ph = self._analyze(norm)

        if len(phone_syms) != len(raw_tones):
            raise AlignmentInvariantError(
                "phones and tones differ in length",
                expected=len(phone_syms), actual=len(raw_tones), check="tones",
            )

        word2ph = _check_counts(word2ph)

        expected_units = len(norm) + 2
        if len(word2ph) != expected_units:
            raise AlignmentInvariantError(
                "word2ph does not have one entry per character plus two",
                expected=expected_units, actual=len(word2ph), check="word2ph_length",
            )

        phones, tones, lang_ids = cleaned_text_to_sequence(phone_syms, raw_tones, self.language)
        phones = intersperse(phones, 0)
        tones = intersperse(tones, 0)
        lang_ids = intersperse(lang_ids, 0)
        word2ph = adjust_word2ph(word2ph)

        if sum(word2ph) != len(phones):
            raise AlignmentInvariantError(
                "word2ph does not cover the phoneme sequence",
                expected=len(phones), actual=sum(word2ph), check="word2ph_sum",
            )

        with timeit("bert") as t_bert:
            emb = self._encode(norm)

        if emb.shape[0] < len(word2ph):
            raise AlignmentInvariantError(
                "encoder produced fewer rows than text units",
                expected=len(word2ph), actual=int(emb.shape[0]), check="embedding_rows",
            )

        bert_ori = expand_features(emb, word2ph)

        verbose(
            _LOG, "aligned",
            chars=len(norm), phones=len(phones),
            g2p_s=round(t_g2p.seconds, 4), bert_s=round(t_bert.seconds, 4),
        )
        debug(_LOG, "aligned_shapes", bert_ori=list(bert_ori.shape), word2ph=word2ph)
        return AlignedFeatures(
            bert_ori=bert_ori,
            phones=phones,
            tones=tones,
            lang_ids=lang_ids,
            word2ph=word2ph,
            text=norm,
        )
