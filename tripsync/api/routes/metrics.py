"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - tripsync_propagations_total{source, target, action}
    - tripsync_sync_blocked_total{target, reason}
    - tripsync_targeting_results_total{domain, status}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
