"""FastAPI integration for MetricSpine.

Serves the scrape endpoint plus health and per-metric status:

- ``GET /metrics``: Prometheus text exposition of the registry
- ``GET /health``: overall status and metric counts
- ``GET /status``: state of every configured metric

Example:
    >>> from metricspine.api.fastapi import create_app
    >>> app = create_app(scheduler, registry)
    >>>
    >>> # Run with: uvicorn (see metricspine.core.exporter)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from metricspine.scheduler.refresh import MetricState

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry

    from metricspine.scheduler.refresh import RefreshScheduler


def create_app(
    scheduler: RefreshScheduler,
    registry: CollectorRegistry,
    title: str = "MetricSpine",
    version: str = "0.1.0",
    description: str = "Prometheus metrics from MongoDB aggregation pipelines",
) -> FastAPI:
    """Create a FastAPI application exposing the scheduler's metrics.

    Args:
        scheduler: Scheduler whose metrics are reported.
        registry: Registry rendered on ``/metrics``.
        title: API title for OpenAPI docs.
        version: API version.
        description: API description for docs.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title=title,
        version=version,
        description=description,
    )

    app.state.scheduler = scheduler
    app.state.registry = registry

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus text exposition."""
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Overall status.

        ``degraded`` when at least one metric failed or stopped updating.
        """
        states = [metric.state for metric in scheduler.metrics]
        failed = sum(1 for state in states if state is MetricState.FAILED)
        stopped = sum(1 for state in states if state is MetricState.STOPPED)
        return {
            "status": "degraded" if failed or stopped else "ok",
            "metrics": len(states),
            "active": sum(1 for metric in scheduler.metrics if metric.active),
            "failed": failed,
            "stopped": stopped,
            "subscriptions": sorted(str(ns) for ns in scheduler.subscriptions),
        }

    @app.get("/status")
    async def status() -> list[dict[str, Any]]:
        """State of every configured metric."""
        return [metric.to_dict() for metric in scheduler.metrics]

    @app.get("/status/{name}")
    async def metric_status(name: str) -> dict[str, Any]:
        """State of one metric."""
        metric = scheduler.get(name)
        if metric is None:
            raise HTTPException(status_code=404, detail=f"Metric '{name}' not found")
        return metric.to_dict()

    return app


__all__ = ["create_app"]
