"""
TTSModelHolder: voice model registry and synthesis entry point.

The holder owns one shared semantic encoder (BERT) with its tokenizer, one
linguistic analyzer, and any number of VITS2 voice models keyed by
identifier. A request flows through it like this:

    holder.parse_text(text)                      -> bert_ori, phones, tones, lang_ids
    holder.get_style_vector(ident, style, w)     -> style vector
    holder.synthesize(ident, ..., sdp, length)   -> raw float32 audio bytes

or in one call with ``synthesize_text``.

Registry Semantics:
    - load() of an identifier that is already present does nothing (no
      reload, no replacement).
    - load() is atomic: if the style table or the session cannot be built,
      nothing is inserted.
    - unload() removes the model and returns True, or returns False.
    - models() lists identifiers in load order.

Thread Safety:
    Lookups take the shared side of a ReadWriteLock; insert/remove take the
    exclusive side. load/unload are additionally serialized by a mutation
    lock, so the slow deserialization happens while synthesis continues.
    A model fetched by a request stays usable even if it is unloaded
    mid-request; its session is released once the last request drops it.
    Inference on a single model is serialized unless the runtime declares
    its sessions concurrent-safe. Different models never block each other.

Usage:
    holder = TTSModelHolder.from_bytes(bert_bytes, tokenizer_bytes, analyzer=MyG2P())
    holder.load("amitaro", style_bytes, vits2_bytes)
    audio = holder.synthesize_text("amitaro", "こんにちは", style_id=1)
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from sbv2_tts.core.config import ConfigValidationError, Settings, SynthesisConfig
from sbv2_tts.core.logging import debug, fail, get_logger, info, success, verbose
from sbv2_tts.core.metrics import metrics
from sbv2_tts.nlp.collaborators import (
    CharTokenizer,
    LinguisticAnalyzer,
    OnnxBertEncoder,
    SemanticEncoder,
    Tokenizer,
    build_analyzer,
)
from sbv2_tts.tts.alignment import AlignedFeatures, FeatureAligner
from sbv2_tts.tts.concurrency import ReadWriteLock
from sbv2_tts.tts.errors import (
    AlignmentInvariantError,
    ErrorCode,
    InferenceError,
    LoadError,
    ModelNotFoundError,
    TTSError,
)
from sbv2_tts.tts.ident import IdentLike, TTSIdent
from sbv2_tts.tts.runtime import InferenceRuntime, OnnxRuntime
from sbv2_tts.tts.style import blend_style, load_style
from sbv2_tts.utils.text import normalize_text, preview
from sbv2_tts.utils.timeit import timeit

_LOG = get_logger("sbv2-tts.holder")


@dataclass
class VoiceModel:
    """
    A loaded VITS2 voice.

    Attributes:
        ident: Registry key.
        session: Runtime session, owned exclusively by this model.
        style_vectors: float32 [styles, dim] table; row 0 is neutral.
        guard: Serializes inference when the runtime is not concurrent-safe.
    """
    ident: TTSIdent
    session: Any
    style_vectors: np.ndarray
    guard: Optional[threading.Lock] = None

    @property
    def num_styles(self) -> int:
        return int(self.style_vectors.shape[0])

    @property
    def style_dim(self) -> int:
        return int(self.style_vectors.shape[1])


@dataclass
class SynthParams:
    """Per-request synthesis controls."""
    style_id: int = 0
    style_weight: float = 1.0
    sdp_ratio: float = 0.0
    length_scale: float = 1.0
    speaker_id: int = 0

    @classmethod
    def from_config(cls, cfg: SynthesisConfig) -> "SynthParams":
        return cls(
            style_id=cfg.style_id,
            style_weight=cfg.style_weight,
            sdp_ratio=cfg.sdp_ratio,
            length_scale=cfg.length_scale,
            speaker_id=cfg.speaker_id,
        )

    def override(self, **values: Any) -> "SynthParams":
        """Copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


class TTSModelHolder:
    """
    Registry of VITS2 voice models plus the shared text front end.

    Args:
        analyzer: Grapheme-to-phoneme converter.
        tokenizer: Tokenizer for the semantic encoder.
        encoder: Semantic (BERT) encoder.
        runtime: Runtime used to build and run voice model sessions.
        normalizer: Text normalizer applied before analysis.
        synthesis: Defaults for ``synthesize_text``.
        text_preview_chars: Characters of input text shown in log lines.
    """

    def __init__(
        self,
        analyzer: LinguisticAnalyzer,
        tokenizer: Tokenizer,
        encoder: SemanticEncoder,
        runtime: InferenceRuntime,
        normalizer: Callable[[str], str] = normalize_text,
        synthesis: Optional[SynthesisConfig] = None,
        text_preview_chars: int = 40,
    ):
        self.runtime = runtime
        self.aligner = FeatureAligner(analyzer, tokenizer, encoder, normalizer)
        self.defaults = SynthParams.from_config(synthesis or SynthesisConfig())
        self._preview_chars = text_preview_chars

        self._models: Dict[TTSIdent, VoiceModel] = {}
        self._rw = ReadWriteLock()
        self._mutation = threading.Lock()

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_bytes(
        cls,
        bert_model_bytes: bytes,
        tokenizer_bytes: bytes,
        analyzer: LinguisticAnalyzer,
        runtime: Optional[InferenceRuntime] = None,
        **kwargs: Any,
    ) -> "TTSModelHolder":
        """
        Build a holder from serialized BERT model and tokenizer.json bytes.

        Raises:
            LoadError: If the BERT model cannot be loaded.
            EncodingError: If the tokenizer cannot be loaded.
        """
        runtime = runtime or OnnxRuntime()
        with timeit("bert_load") as t:
            tokenizer = CharTokenizer.from_bytes(tokenizer_bytes)
            encoder = OnnxBertEncoder.from_bytes(runtime, bert_model_bytes)
        info(_LOG, "bert_loaded", bytes=len(bert_model_bytes), seconds=round(t.seconds, 3))
        return cls(analyzer, tokenizer, encoder, runtime, **kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        analyzer: Optional[LinguisticAnalyzer] = None,
        runtime: Optional[InferenceRuntime] = None,
    ) -> "TTSModelHolder":
        """
        Build a holder from settings.yaml and load the configured models.

        Raises:
            ConfigValidationError: If the configuration is incomplete.
            LoadError / FormatError: If a configured model fails to load.
        """
        cfg = settings.get_holder_config()
        if not cfg.bert.model_path or not cfg.bert.tokenizer_path:
            raise ConfigValidationError("bert.model_path and bert.tokenizer_path are required")

        if analyzer is None:
            if not cfg.analyzer.entrypoint:
                raise ConfigValidationError("analyzer.entrypoint is required when no analyzer is passed")
            analyzer = build_analyzer(cfg.analyzer.entrypoint, cfg.analyzer.options)

        if runtime is None:
            runtime = OnnxRuntime(
                providers=cfg.runtime.providers,
                intra_op_num_threads=cfg.runtime.intra_op_num_threads,
                serialize_inference=cfg.runtime.serialize_inference,
            )

        holder = cls.from_bytes(
            _read_file(cfg.bert.model_path),
            _read_file(cfg.bert.tokenizer_path),
            analyzer=analyzer,
            runtime=runtime,
            synthesis=cfg.synthesis,
            text_preview_chars=cfg.logging.text_preview_chars,
        )
        for entry in cfg.models:
            holder.load_from_paths(entry.ident, entry.style_path, entry.model_path)
        return holder

    # =========================================================================
    # Registry
    # =========================================================================

    def models(self) -> List[str]:
        """Identifiers of the loaded models, in load order."""
        with self._rw.read():
            return [str(k) for k in self._models]

    list_identifiers = models

    def __contains__(self, ident: IdentLike) -> bool:
        with self._rw.read():
            return TTSIdent.of(ident) in self._models

    def __len__(self) -> int:
        with self._rw.read():
            return len(self._models)

    def load(self, ident: IdentLike, style_vectors_bytes: bytes, vits2_bytes: bytes) -> None:
        """
        Deserialize and register a voice model.

        Does nothing if ``ident`` is already loaded.

        Raises:
            FormatError: If the style vectors cannot be parsed.
            LoadError: If the runtime cannot build a session.
        """
        key = TTSIdent.of(ident)
        with self._mutation:
            with self._rw.read():
                present = key in self._models
            if present:
                verbose(_LOG, "model_load_skipped", model=str(key), reason="already_loaded")
                metrics.record_load("skipped")
                return

            try:
                with timeit("model_load") as t:
                    table = load_style(style_vectors_bytes)
                    session = self.runtime.load(vits2_bytes)
            except TTSError as exc:
                fail(_LOG, "model_load_failed", model=str(key), error=exc.message, code=exc.code)
                metrics.record_load("error")
                raise
            except Exception as exc:
                fail(_LOG, "model_load_failed", model=str(key), error=str(exc), error_type=type(exc).__name__)
                metrics.record_load("error")
                raise LoadError(f"cannot load model {key}: {exc}", {"ident": str(key)}) from exc

            guard = None if self.runtime.concurrent_safe else threading.Lock()
            model = VoiceModel(ident=key, session=session, style_vectors=table, guard=guard)
            with self._rw.write():
                self._models[key] = model
            metrics.models_added()

        metrics.record_load("success")
        success(
            _LOG, "model_loaded",
            model=str(key), styles=model.num_styles, style_dim=model.style_dim,
            seconds=round(t.seconds, 3),
        )

    def load_from_paths(self, ident: IdentLike, style_path: str | Path, model_path: str | Path) -> None:
        """
        ``load`` with the style table and VITS2 model read from files.

        Raises:
            LoadError: If a file cannot be read.
            FormatError: If the style vectors cannot be parsed.
        """
        if ident in self:
            verbose(_LOG, "model_load_skipped", model=str(ident), reason="already_loaded")
            return
        self.load(ident, _read_file(style_path), _read_file(model_path))

    def unload(self, ident: IdentLike) -> bool:
        """Remove a model. Returns False if it was not loaded."""
        key = TTSIdent.of(ident)
        with self._mutation:
            with self._rw.write():
                removed = self._models.pop(key, None)
                count = len(self._models)
            if removed is not None:
                metrics.models_removed()

        if removed is None:
            verbose(_LOG, "model_unload_missing", model=str(key))
            return False
        info(_LOG, "model_unloaded", model=str(key), remaining=count)
        return True

    def find_model(self, ident: IdentLike) -> VoiceModel:
        """
        Raises:
            ModelNotFoundError: If ``ident`` is not loaded.
        """
        key = TTSIdent.of(ident)
        with self._rw.read():
            model = self._models.get(key)
        if model is None:
            raise ModelNotFoundError(str(key))
        return model

    def close(self) -> None:
        """Drop every loaded model."""
        with self._mutation:
            with self._rw.write():
                dropped = len(self._models)
                self._models.clear()
            metrics.models_removed(dropped)
        info(_LOG, "holder_closed", dropped=dropped)

    # =========================================================================
    # Text front end
    # =========================================================================

    def align_text(self, text: str) -> AlignedFeatures:
        """
        Like ``parse_text`` but returns the full AlignedFeatures record.

        Raises:
            AnalysisError / EncodingError / AlignmentInvariantError
        """
        try:
            return self.aligner.align(text)
        except AlignmentInvariantError as exc:
            metrics.inc_alignment_failures()
            fail(
                _LOG, "alignment_failed",
                error=exc.message, text_preview=preview(text, self._preview_chars), **exc.details,
            )
            raise

    def parse_text(self, text: str) -> Tuple[np.ndarray, List[int], List[int], List[int]]:
        """
        Turn raw text into VITS2 inputs.

        Returns:
            (bert_ori [dim, phones] float32, phones, tones, lang_ids)
        """
        return self.align_text(text).as_tuple()

    def get_style_vector(self, ident: IdentLike, style_id: int, weight: float) -> np.ndarray:
        """
        Blend the neutral style of ``ident`` towards ``style_id``.

        Raises:
            ModelNotFoundError: If ``ident`` is not loaded.
            StyleIndexError: If ``style_id`` is out of range.
        """
        model = self.find_model(ident)
        return blend_style(model.style_vectors, style_id, weight, str(model.ident))

    # =========================================================================
    # Synthesis
    # =========================================================================

    def synthesize(
        self,
        ident: IdentLike,
        bert_ori: np.ndarray,
        phones: Sequence[int],
        tones: Sequence[int],
        lang_ids: Sequence[int],
        style_vector: np.ndarray,
        sdp_ratio: float,
        length_scale: float,
        speaker_id: Optional[int] = None,
    ) -> bytes:
        """
        Run the voice model and return its raw float32 output bytes.

        Raises:
            ModelNotFoundError: If ``ident`` is not loaded.
            AlignmentInvariantError: If the input sequences disagree.
            InferenceError: If the runtime fails.
        """
        return self._synthesize(
            self.find_model(ident), bert_ori, phones, tones, lang_ids, style_vector,
            sdp_ratio, length_scale, self.defaults.speaker_id if speaker_id is None else speaker_id,
        )

    def _synthesize(
        self,
        model: VoiceModel,
        bert_ori: np.ndarray,
        phones: Sequence[int],
        tones: Sequence[int],
        lang_ids: Sequence[int],
        style_vector: np.ndarray,
        sdp_ratio: float,
        length_scale: float,
        speaker_id: int,
    ) -> bytes:
        name = str(model.ident)
        inputs = self._graph_inputs(
            model, bert_ori, phones, tones, lang_ids, style_vector, sdp_ratio, length_scale, speaker_id,
        )

        try:
            with timeit("vits2") as t:
                if model.guard is None:
                    outputs = self.runtime.run(model.session, inputs)
                else:
                    with model.guard:
                        outputs = self.runtime.run(model.session, inputs)
        except TTSError as exc:
            metrics.record_synthesis(name, "error", t.seconds)
            fail(_LOG, "synth_failed", model=name, error=exc.message, code=exc.code)
            raise
        except Exception as exc:
            metrics.record_synthesis(name, "error", t.seconds)
            fail(_LOG, "synth_failed", model=name, error=str(exc), error_type=type(exc).__name__)
            raise InferenceError(f"synthesis failed for {name}: {exc}", {"ident": name}) from exc

        if "output" not in outputs:
            metrics.record_synthesis(name, "error", t.seconds)
            raise InferenceError(
                "voice model returned no 'output' tensor", {"ident": name, "outputs": sorted(outputs)}
            )
        audio = np.ascontiguousarray(outputs["output"], dtype=np.float32).tobytes()

        metrics.record_synthesis(name, "success", t.seconds, len(audio))
        info(_LOG, "synthesized", model=name, phones=len(phones), bytes=len(audio), seconds=round(t.seconds, 3))
        return audio

    @staticmethod
    def _graph_inputs(
        model: VoiceModel,
        bert_ori: np.ndarray,
        phones: Sequence[int],
        tones: Sequence[int],
        lang_ids: Sequence[int],
        style_vector: np.ndarray,
        sdp_ratio: float,
        length_scale: float,
        speaker_id: int,
    ) -> Dict[str, np.ndarray]:
        name = str(model.ident)
        bert = np.asarray(bert_ori, dtype=np.float32)
        n = len(phones)
        if bert.ndim != 2 or bert.shape[1] != n:
            raise AlignmentInvariantError(
                "bert_ori must be [dim, phones]",
                expected=n, actual=list(bert.shape), check="bert_columns", ident=name,
            )
        for label, seq in (("tones", tones), ("lang_ids", lang_ids)):
            if len(seq) != n:
                raise AlignmentInvariantError(
                    f"{label} and phones differ in length",
                    expected=n, actual=len(seq), check=label, ident=name,
                )

        style = np.asarray(style_vector, dtype=np.float32).reshape(-1)
        if style.shape[0] != model.style_dim:
            raise TTSError(
                f"style vector has {style.shape[0]} dims, {name} expects {model.style_dim}",
                ErrorCode.INVALID_INPUT,
                {"ident": name, "expected": model.style_dim, "actual": int(style.shape[0])},
            )

        inputs = {
            "x_tst": np.asarray(phones, dtype=np.int64).reshape(1, n),
            "x_tst_lengths": np.array([n], dtype=np.int64),
            "sid": np.array([speaker_id], dtype=np.int64),
            "tones": np.asarray(tones, dtype=np.int64).reshape(1, n),
            "language": np.asarray(lang_ids, dtype=np.int64).reshape(1, n),
            "bert": bert.reshape(1, bert.shape[0], n),
            "style_vec": style.reshape(1, -1),
            "sdp_ratio": np.array([sdp_ratio], dtype=np.float32),
            "length_scale": np.array([length_scale], dtype=np.float32),
        }
        debug(_LOG, "graph_inputs", model=name, **{k: list(v.shape) for k, v in inputs.items()})
        return inputs

    def synthesize_text(
        self,
        ident: IdentLike,
        text: str,
        style_id: Optional[int] = None,
        style_weight: Optional[float] = None,
        sdp_ratio: Optional[float] = None,
        length_scale: Optional[float] = None,
        speaker_id: Optional[int] = None,
    ) -> bytes:
        """
        parse_text + get_style_vector + synthesize in one call.

        Parameters left as None take the configured synthesis defaults.
        The model and style id are checked before any text processing.
        """
        params = self.defaults.override(
            style_id=style_id,
            style_weight=style_weight,
            sdp_ratio=sdp_ratio,
            length_scale=length_scale,
            speaker_id=speaker_id,
        )
        info(
            _LOG, "request",
            model=str(ident), chars=len(text), text_preview=preview(text, self._preview_chars),
        )

        model = self.find_model(ident)
        style_vec = blend_style(model.style_vectors, params.style_id, params.style_weight, str(model.ident))
        bert_ori, phones, tones, lang_ids = self.parse_text(text)
        return self._synthesize(
            model, bert_ori, phones, tones, lang_ids, style_vec,
            params.sdp_ratio, params.length_scale, params.speaker_id,
        )


def _read_file(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise LoadError(f"cannot read {path}: {exc.strerror or exc}", {"path": str(path)}) from exc
