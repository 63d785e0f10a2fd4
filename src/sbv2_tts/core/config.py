"""
Configuration Management for sbv2-tts.

Settings are read from a YAML file into an immutable ``Settings`` object,
and validated into typed section dataclasses by ``HolderConfig``.

Configuration Hierarchy (highest priority first):
    1. Environment variables (SBV2_DEVICE, SBV2_MODELS_DIR, SBV2_LOG_LEVEL)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    bert:
      model_path: models/deberta.onnx
      tokenizer_path: models/tokenizer.json

    analyzer:
      entrypoint: my_g2p.jtalk:JTalkAnalyzer

    runtime:
      device: cpu
      serialize_inference: false

    models:
      - ident: amitaro
        model_path: models/amitaro.onnx
        style_path: models/amitaro.json

    synthesis:
      sdp_ratio: 0.0
      length_scale: 1.0

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import os
import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is missing, out of range or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Runtime: ONNX Runtime session options
        - Synthesis: control parameters passed to the VITS2 graph
        - Style: style selection defaults
        - Logging: log level and text preview
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Runtime
    # ─────────────────────────────────────────────────────────────────────────
    RUNTIME_DEVICE = "cpu"              # cpu / cuda
    RUNTIME_INTRA_OP_THREADS = 0        # 0 lets onnxruntime decide
    RUNTIME_SERIALIZE_INFERENCE = False # force one call at a time per session

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis
    # ─────────────────────────────────────────────────────────────────────────
    SYNTH_SDP_RATIO = 0.0               # stochastic duration predictor blend
    SYNTH_LENGTH_SCALE = 1.0            # >1 slows speech down
    SYNTH_SPEAKER_ID = 0                # sid input of the graph
    SYNTH_SAMPLE_RATE = 44100           # JP-Extra models emit 44.1 kHz

    # ─────────────────────────────────────────────────────────────────────────
    # Style
    # ─────────────────────────────────────────────────────────────────────────
    STYLE_ID = 0                        # row 0 is the neutral style
    STYLE_WEIGHT = 1.0                  # full target style

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 40
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


_DEVICE_PROVIDERS = {
    "cpu": ["CPUExecutionProvider"],
    "cuda": ["CUDAExecutionProvider", "CPUExecutionProvider"],
    "dml": ["DmlExecutionProvider", "CPUExecutionProvider"],
}


@dataclass
class BertConfig:
    """Paths of the shared semantic encoder and its tokenizer."""
    model_path: str = ""
    tokenizer_path: str = ""


@dataclass
class AnalyzerConfig:
    """``module:attr`` of the linguistic analyzer factory, plus its kwargs."""
    entrypoint: str = ""
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RuntimeConfig:
    """
    ONNX Runtime configuration.

    ``providers`` wins over ``device`` when both are given.
    """
    device: str = Defaults.RUNTIME_DEVICE
    providers: List[str] = field(default_factory=lambda: list(_DEVICE_PROVIDERS["cpu"]))
    intra_op_num_threads: int = Defaults.RUNTIME_INTRA_OP_THREADS
    serialize_inference: bool = Defaults.RUNTIME_SERIALIZE_INFERENCE


@dataclass
class SynthesisConfig:
    """Per-request defaults for synthesis calls."""
    sdp_ratio: float = Defaults.SYNTH_SDP_RATIO
    length_scale: float = Defaults.SYNTH_LENGTH_SCALE
    speaker_id: int = Defaults.SYNTH_SPEAKER_ID
    sample_rate: int = Defaults.SYNTH_SAMPLE_RATE
    style_id: int = Defaults.STYLE_ID
    style_weight: float = Defaults.STYLE_WEIGHT


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: model load/unload, failures
        2 = NORMAL: one line per request (default)
        3 = VERBOSE: per-stage timing
        4 = DEBUG: tensor shapes
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass(frozen=True)
class ModelEntry:
    """A voice model to load at startup."""
    ident: str
    model_path: str
    style_path: str


@dataclass
class HolderConfig:
    """
    Validated configuration for TTSModelHolder.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = HolderConfig.from_settings(settings)
        print(config.runtime.providers)
    """
    bert: BertConfig = field(default_factory=BertConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    models: Tuple[ModelEntry, ...] = ()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "HolderConfig":
        """
        Build and validate the typed configuration.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Semantic encoder
        # ─────────────────────────────────────────────────────────────────────
        bert_raw = raw.get("bert", {}) or {}
        bert = BertConfig(
            model_path=str(bert_raw.get("model_path", "")),
            tokenizer_path=str(bert_raw.get("tokenizer_path", "")),
        )

        analyzer_raw = raw.get("analyzer", {}) or {}
        analyzer = AnalyzerConfig(
            entrypoint=str(analyzer_raw.get("entrypoint", "")),
            options=dict(analyzer_raw.get("options", {}) or {}),
        )
        if analyzer.entrypoint and ":" not in analyzer.entrypoint:
            raise ConfigValidationError(
                f"analyzer.entrypoint must look like 'module:attr', got {analyzer.entrypoint!r}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Runtime
        # ─────────────────────────────────────────────────────────────────────
        runtime_raw = raw.get("runtime", {}) or {}
        device = str(runtime_raw.get("device", Defaults.RUNTIME_DEVICE)).strip().lower()
        providers = runtime_raw.get("providers")
        if providers is None:
            if device not in _DEVICE_PROVIDERS:
                raise ConfigValidationError(
                    f"runtime.device must be one of {sorted(_DEVICE_PROVIDERS)}, got {device!r}"
                )
            providers = _DEVICE_PROVIDERS[device]
        runtime = RuntimeConfig(
            device=device,
            providers=[str(p) for p in providers],
            intra_op_num_threads=int(runtime_raw.get("intra_op_num_threads", Defaults.RUNTIME_INTRA_OP_THREADS)),
            serialize_inference=bool(runtime_raw.get("serialize_inference", Defaults.RUNTIME_SERIALIZE_INFERENCE)),
        )
        if not runtime.providers:
            raise ConfigValidationError("runtime.providers must not be empty")
        cls._validate_non_negative("runtime.intra_op_num_threads", runtime.intra_op_num_threads)

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis defaults
        # ─────────────────────────────────────────────────────────────────────
        synth_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            sdp_ratio=float(synth_raw.get("sdp_ratio", Defaults.SYNTH_SDP_RATIO)),
            length_scale=float(synth_raw.get("length_scale", Defaults.SYNTH_LENGTH_SCALE)),
            speaker_id=int(synth_raw.get("speaker_id", Defaults.SYNTH_SPEAKER_ID)),
            sample_rate=int(synth_raw.get("sample_rate", Defaults.SYNTH_SAMPLE_RATE)),
            style_id=int(synth_raw.get("style_id", Defaults.STYLE_ID)),
            style_weight=float(synth_raw.get("style_weight", Defaults.STYLE_WEIGHT)),
        )
        cls._validate_range("synthesis.sdp_ratio", synthesis.sdp_ratio, 0.0, 1.0)
        cls._validate_positive("synthesis.length_scale", synthesis.length_scale)
        cls._validate_non_negative("synthesis.speaker_id", synthesis.speaker_id)
        cls._validate_positive("synthesis.sample_rate", synthesis.sample_rate)
        cls._validate_non_negative("synthesis.style_id", synthesis.style_id)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            from sbv2_tts.core.logging.levels import coerce_level
            log_level = int(coerce_level(log_level_raw))
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        # ─────────────────────────────────────────────────────────────────────
        # Voice models
        # ─────────────────────────────────────────────────────────────────────
        models = tuple(cls._model_entries(raw.get("models", []) or [], settings.models_dir))

        return cls(
            bert=bert,
            analyzer=analyzer,
            runtime=runtime,
            synthesis=synthesis,
            logging=logging_cfg,
            models=models,
        )

    @staticmethod
    def _model_entries(items: List[Any], models_dir: Optional[str]) -> List[ModelEntry]:
        entries: List[ModelEntry] = []
        seen = set()
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                raise ConfigValidationError(f"models[{i}] must be a mapping, got {type(item).__name__}")
            missing = [k for k in ("ident", "model_path", "style_path") if not item.get(k)]
            if missing:
                raise ConfigValidationError(f"models[{i}] is missing {', '.join(missing)}")
            ident = str(item["ident"])
            if ident in seen:
                raise ConfigValidationError(f"models[{i}] repeats identifier {ident!r}")
            seen.add(ident)

            model_path = str(item["model_path"])
            style_path = str(item["style_path"])
            if models_dir:
                model_path = str(Path(models_dir) / model_path)
                style_path = str(Path(models_dir) / style_path)
            entries.append(ModelEntry(ident=ident, model_path=model_path, style_path=style_path))
        return entries

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    Use ``get_holder_config()`` for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def device(self) -> str:
        """Compute device for onnxruntime (cpu/cuda/dml)."""
        return str(self.raw.get("runtime", {}).get("device", Defaults.RUNTIME_DEVICE))

    @property
    def models_dir(self) -> Optional[str]:
        """Directory that relative model paths are resolved against."""
        value = self.raw.get("models_dir")
        return str(value) if value else None

    @property
    def sample_rate(self) -> int:
        """Sample rate of the audio the voice models emit."""
        return int(self.raw.get("synthesis", {}).get("sample_rate", Defaults.SYNTH_SAMPLE_RATE))

    def get_holder_config(self) -> HolderConfig:
        """
        Raises:
            ConfigValidationError: If validation fails.
        """
        return HolderConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - SBV2_DEVICE: runtime.device
        - SBV2_MODELS_DIR: models_dir

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    dev = os.getenv("SBV2_DEVICE")
    if dev:
        runtime = raw.setdefault("runtime", {})
        runtime["device"] = dev
        runtime.pop("providers", None)

    models_dir = os.getenv("SBV2_MODELS_DIR")
    if models_dir:
        raw["models_dir"] = models_dir

    return Settings(raw=raw)
