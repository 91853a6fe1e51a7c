"""
User API Backend — Metrics Route
==================================

What:  GET /metrics in the Prometheus text exposition format.
How:   Renders the registry of the application's MetricsClient, which holds
       the `database_query_duration_seconds` histogram.
"""

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint(request: Request) -> Response:
    registry = request.app.state.metrics.registry
    return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
