"""
Metrics API endpoints.

Prometheus-format export of the engine counters.
"""

from fastapi import APIRouter, Depends, Response
import logging

from contract_sla.api.deps import get_components
from contract_sla.core.components import EngineComponents

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/metrics", summary="Prometheus Metrics", tags=["monitoring"])
async def get_prometheus_metrics(components: EngineComponents = Depends(get_components)):
    """Export metrics in Prometheus text format."""
    return Response(
        content=components.metrics.get_prometheus_metrics(),
        media_type=components.metrics.get_prometheus_content_type(),
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0"
        }
    )
