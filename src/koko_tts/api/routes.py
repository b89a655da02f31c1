"""
Service Endpoints.

    GET /health    instance count and per-instance request counters
    GET /metrics   Prometheus text format
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from koko_tts.api.dependencies import get_pool
from koko_tts.api.schemas import HealthResponse, InstanceHealth
from koko_tts.core.metrics import metrics
from koko_tts.tts.pool import InstancePool

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health(pool: InstancePool = Depends(get_pool)):
    """
    Liveness/readiness probe.

    The pool is built before the server accepts requests, so answering at
    all means every instance has loaded its model.
    """
    stats = pool.stats()
    return HealthResponse(
        status="healthy",
        instances=len(stats),
        voices=len(pool.voices()),
        details=[InstanceHealth(instance_id=s.instance_id, active=s.active, total=s.total) for s in stats],
    )


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
