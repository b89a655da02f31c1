"""
Prometheus Metrics for koko.

Metrics Exposed:
    koko_requests_total                 - HTTP synthesis requests by status
    koko_request_duration_seconds       - Histogram of request latency
    koko_chunks_total                   - Chunks synthesized, per instance
    koko_chunk_inference_seconds        - Histogram of per-chunk model time
    koko_audio_seconds_total            - Seconds of audio produced
    koko_instance_active                - 1 while an instance holds a request

Usage:
    from koko_tts.core.metrics import metrics

    metrics.record_request(status="success", duration=0.8)
    metrics.record_chunk(instance="00", seconds=0.31, samples=48000)
    content, content_type = metrics.get_metrics_response()
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

from koko_tts.core.config import Defaults


class KokoMetrics:
    """
    Metric collection on a private CollectorRegistry.

    A private registry keeps repeated construction (tests, several apps in
    one process) from colliding on the global default registry.
    """

    def __init__(self, sample_rate: int = Defaults.SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "koko_requests_total",
            "Total synthesis requests",
            ["status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "koko_request_duration_seconds",
            "Synthesis request duration in seconds",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._chunks_total = Counter(
            "koko_chunks_total",
            "Total chunks synthesized",
            ["instance"],
            registry=self._registry,
        )
        self._chunk_inference = Histogram(
            "koko_chunk_inference_seconds",
            "Model inference time per chunk",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )
        self._audio_seconds = Counter(
            "koko_audio_seconds_total",
            "Seconds of audio produced",
            registry=self._registry,
        )
        self._instance_active = Gauge(
            "koko_instance_active",
            "Whether an instance is serving a request (1) or idle (0)",
            ["instance"],
            registry=self._registry,
        )

    def record_request(self, status: str, duration: float) -> None:
        """
        Record a finished HTTP synthesis request.

        Args:
            status: "success", "client_error" or "error".
            duration: Wall time in seconds.
        """
        self._requests_total.labels(status=status).inc()
        self._request_duration.observe(duration)

    def record_chunk(self, instance: str, seconds: float, samples: int) -> None:
        self._chunks_total.labels(instance=instance).inc()
        self._chunk_inference.observe(seconds)
        if samples > 0:
            self._audio_seconds.inc(samples / float(self.sample_rate))

    def set_instance_active(self, instance: str, active: bool) -> None:
        self._instance_active.labels(instance=instance).set(1 if active else 0)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (content, content_type) for the /metrics endpoint."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Import this to record metrics: from koko_tts.core.metrics import metrics
metrics = KokoMetrics()
