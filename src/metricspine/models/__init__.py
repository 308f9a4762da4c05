"""Data models for metric definitions and engine events."""

from metricspine.models.base import MetricSpineModel, Namespace
from metricspine.models.events import ChangeEvent, Observation, ResultRecord
from metricspine.models.metric import MetricKind, MetricSpec

__all__ = [
    "ChangeEvent",
    "MetricKind",
    "MetricSpec",
    "MetricSpineModel",
    "Namespace",
    "Observation",
    "ResultRecord",
]
