"""
Inference Runtime Adapter.

The holder never touches a neural network framework directly. It talks to
an ``InferenceRuntime``, which knows two things:

    load(model_bytes) -> session       build a session from serialized weights
    run(session, inputs) -> outputs    execute the graph on named tensors

``OnnxRuntime`` is the production implementation, backed by onnxruntime.
Tests plug in a fake runtime with the same two methods.

Thread Safety:
    ``concurrent_safe`` tells the holder whether ``run`` may be called on the
    same session from several threads at once. onnxruntime documents
    ``InferenceSession.run`` as thread-safe, so OnnxRuntime sets it unless
    ``serialize_inference`` is configured. Runtimes that leave it False get
    one call at a time per session.

Configuration:
    settings.yaml:
        runtime:
          device: cuda               # cpu / cuda / dml
          providers: [CUDAExecutionProvider, CPUExecutionProvider]
          intra_op_num_threads: 4
          serialize_inference: false
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from sbv2_tts.core.logging import debug, get_logger, info, warn
from sbv2_tts.tts.errors import InferenceError, LoadError
from sbv2_tts.utils.timeit import timeit

_LOG = get_logger("sbv2-tts.runtime")


class InferenceRuntime:
    """
    Base class for inference runtimes.

    Subclasses implement ``load`` and ``run``. Sessions are opaque to the
    holder; it only stores them and hands them back to ``run``.
    """
    name: str = "base"
    concurrent_safe: bool = False

    def load(self, model_bytes: bytes) -> Any:
        """
        Build a session from serialized model bytes.

        Raises:
            LoadError: If the bytes are not a loadable model.
        """
        raise NotImplementedError

    def run(self, session: Any, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """
        Execute ``session`` on named input tensors.

        Raises:
            InferenceError: If execution fails.
        """
        raise NotImplementedError


def _import_onnxruntime():
    try:
        import onnxruntime
    except ImportError as exc:
        raise RuntimeError("onnxruntime missing. Install with: pip install onnxruntime") from exc
    return onnxruntime


class OnnxRuntime(InferenceRuntime):
    """
    onnxruntime-backed runtime.

    Requested execution providers that the installed onnxruntime build does
    not offer are dropped with a warning; CPU is always kept as the final
    fallback.
    """
    name = "onnxruntime"

    def __init__(
        self,
        providers: Optional[Sequence[str]] = None,
        intra_op_num_threads: int = 0,
        serialize_inference: bool = False,
    ):
        self._ort = _import_onnxruntime()
        self.providers = self._resolve_providers(providers or ["CPUExecutionProvider"])
        self.intra_op_num_threads = intra_op_num_threads
        self.concurrent_safe = not serialize_inference
        info(_LOG, "runtime_ready", providers=self.providers, concurrent_safe=self.concurrent_safe)

    def _resolve_providers(self, wanted: Sequence[str]) -> List[str]:
        available = set(self._ort.get_available_providers())
        resolved = [p for p in wanted if p in available]
        dropped = [p for p in wanted if p not in available]
        if dropped:
            warn(_LOG, "providers_unavailable", dropped=dropped, available=sorted(available))
        if "CPUExecutionProvider" not in resolved:
            resolved.append("CPUExecutionProvider")
        return resolved

    def _session_options(self):
        opts = self._ort.SessionOptions()
        opts.graph_optimization_level = self._ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        if self.intra_op_num_threads > 0:
            opts.intra_op_num_threads = self.intra_op_num_threads
        return opts

    def load(self, model_bytes: bytes) -> Any:
        if not model_bytes:
            raise LoadError("model bytes are empty")
        try:
            with timeit("session_create") as t:
                session = self._ort.InferenceSession(
                    bytes(model_bytes),
                    sess_options=self._session_options(),
                    providers=self.providers,
                )
        except Exception as exc:
            raise LoadError(f"cannot create inference session: {exc}", {"bytes": len(model_bytes)}) from exc

        debug(
            _LOG, "session_created",
            inputs=[i.name for i in session.get_inputs()],
            outputs=[o.name for o in session.get_outputs()],
            seconds=t.timing.seconds if t.timing else -1.0,
        )
        return session

    def run(self, session: Any, inputs: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        try:
            output_names = [o.name for o in session.get_outputs()]
            values = session.run(output_names, inputs)
        except Exception as exc:
            shapes = {name: list(np.shape(arr)) for name, arr in inputs.items()}
            raise InferenceError(f"inference failed: {exc}", {"input_shapes": shapes}) from exc
        return dict(zip(output_names, values))
