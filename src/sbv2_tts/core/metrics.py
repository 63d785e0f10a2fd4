"""
Prometheus Metrics for the Model Holder.

Metrics Exposed:
    sbv2_synth_requests_total          - Counter of synthesis calls by model and status
    sbv2_synth_duration_seconds        - Histogram of synthesis latency by model
    sbv2_audio_bytes_total             - Counter of raw audio bytes returned
    sbv2_models_loaded                 - Gauge of models loaded across every holder in the process
    sbv2_model_loads_total             - Counter of load attempts by status
    sbv2_alignment_failures_total      - Counter of aborted alignments

Usage:
    from sbv2_tts.core.metrics import metrics

    metrics.record_synthesis("amitaro", "success", duration=0.42, audio_bytes=176400)
    metrics.models_added()

    content, content_type = metrics.get_metrics_response()

All metrics live in a private CollectorRegistry, so a host application with
its own metrics can share the process. Holders report into the one global
instance: the models gauge moves by deltas, so it stays the process total
when several holders are alive.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class HolderMetrics:
    """
    Metrics collection for TTSModelHolder.

    Prometheus metric objects are thread-safe, so the holder records from
    any request thread without extra locking.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._synth_total = Counter(
            "sbv2_synth_requests_total",
            "Total synthesis calls",
            ["model", "status"],
            registry=self._registry,
        )
        self._synth_duration = Histogram(
            "sbv2_synth_duration_seconds",
            "Synthesis duration in seconds",
            ["model"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "sbv2_audio_bytes_total",
            "Total raw audio bytes returned",
            registry=self._registry,
        )
        self._models_loaded = Gauge(
            "sbv2_models_loaded",
            "Voice models currently loaded",
            registry=self._registry,
        )
        self._model_loads = Counter(
            "sbv2_model_loads_total",
            "Model load attempts",
            ["status"],
            registry=self._registry,
        )
        self._alignment_failures = Counter(
            "sbv2_alignment_failures_total",
            "Alignments aborted by an invariant violation",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_synthesis(self, model: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a finished synthesis call.

        Args:
            model: Voice model identifier
            status: "success" or "error"
            duration: Call duration in seconds
            audio_bytes: Size of the returned raw audio
        """
        self._synth_total.labels(model=model, status=status).inc()
        self._synth_duration.labels(model=model).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_load(self, status: str) -> None:
        """Record a load attempt ("success", "skipped" or "error")."""
        self._model_loads.labels(status=status).inc()

    def models_added(self, count: int = 1) -> None:
        self._models_loaded.inc(count)

    def models_removed(self, count: int = 1) -> None:
        self._models_loaded.dec(count)

    def inc_alignment_failures(self) -> None:
        self._alignment_failures.inc()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = HolderMetrics()
