"""Tests for metricspine.api.fastapi - scrape, health and status endpoints."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from metricspine.backend.memory import MemoryBackend
from metricspine.models.metric import MetricSpec
from metricspine.scheduler.refresh import MetricState, RefreshScheduler

fastapi = pytest.importorskip("fastapi", reason="FastAPI not installed")
from fastapi.testclient import TestClient  # noqa: E402

from metricspine.api.fastapi import create_app  # noqa: E402

# =============================================================================
# Test Fixtures and Helpers
# =============================================================================


def make_spec(name: str, kind: str = "gauge", labels: tuple[str, ...] = (), realtime: bool = False) -> MetricSpec:
    return MetricSpec(
        name=name,
        type=kind,
        help=f"help for {name}",
        value="value",
        labels=labels,
        database="ops",
        collection="queues",
        realtime=realtime,
    )


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def scheduler(registry: CollectorRegistry) -> RefreshScheduler:
    """Scheduler with initialized sinks and one failed metric, no tasks."""
    backend = MemoryBackend()
    scheduler = RefreshScheduler(
        [
            make_spec("queue_depth", labels=("region",), realtime=True),
            make_spec("orders_total", kind="counter"),
            make_spec("queue_depth"),
        ],
        backend,
        backend,
        registry,
    )
    scheduler.initialize_metrics()
    return scheduler


@pytest.fixture
def client(scheduler: RefreshScheduler, registry: CollectorRegistry) -> TestClient:
    return TestClient(create_app(scheduler, registry))


# =============================================================================
# Tests
# =============================================================================


class TestMetricsEndpoint:
    def test_exposition(self, client: TestClient, scheduler: RefreshScheduler) -> None:
        queue_depth, orders_total, _ = scheduler.metrics
        queue_depth.sink.apply(7.0, ("us-east",))
        orders_total.sink.apply(42.0)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'queue_depth{region="us-east"} 7.0' in response.text
        assert "orders_total 42.0" in response.text
        assert "# HELP queue_depth help for queue_depth" in response.text


class TestHealthEndpoint:
    def test_degraded_with_failed_metric(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["metrics"] == 3
        assert body["failed"] == 1
        assert body["active"] == 2

    def test_ok(self, registry: CollectorRegistry) -> None:
        backend = MemoryBackend()
        scheduler = RefreshScheduler([make_spec("only")], backend, backend, registry)
        scheduler.initialize_metrics()

        body = TestClient(create_app(scheduler, registry)).get("/health").json()

        assert body["status"] == "ok"
        assert body["subscriptions"] == []


class TestStatusEndpoint:
    def test_lists_metrics(self, client: TestClient) -> None:
        response = client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert [m["name"] for m in body] == ["queue_depth", "orders_total", "queue_depth"]
        assert body[0]["mode"] == "realtime"
        assert body[1]["mode"] == "interval"
        assert body[1]["interval"] == 5.0
        assert body[2]["state"] == MetricState.FAILED.value
        assert "queue_depth" in body[2]["last_error"]

    def test_single_metric(self, client: TestClient) -> None:
        response = client.get("/status/orders_total")

        assert response.status_code == 200
        assert response.json()["type"] == "counter"

    def test_unknown_metric(self, client: TestClient) -> None:
        response = client.get("/status/missing")

        assert response.status_code == 404
