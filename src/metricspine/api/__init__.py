"""HTTP surface for MetricSpine."""

from metricspine.api.fastapi import create_app

__all__ = ["create_app"]
