"""Metric definition model.

A MetricSpec is the immutable description of one exported metric: what to
query, how to read the result and when to refresh it.

Example:
    >>> from metricspine.models.metric import MetricSpec
    >>> spec = MetricSpec(
    ...     name="orders_total",
    ...     type="counter",
    ...     value="count",
    ...     database="shop",
    ...     collection="orders",
    ...     pipeline='[{"$count": "count"}]',
    ...     interval=5,
    ... )
    >>> spec.kind.value
    'counter'
    >>> str(spec.namespace)
    'shop.orders'
    >>> spec.pipeline
    [{'$count': 'count'}]
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from bson import json_util
from pydantic import Field, field_validator, model_validator

from metricspine.models.base import MetricSpineModel, Namespace

# Classic Prometheus exposition rules, accepted by every scraper
METRIC_NAME_PATTERN = r"^[a-zA-Z_:][a-zA-Z0-9_:]*$"
LABEL_NAME_PATTERN = r"^[a-zA-Z_][a-zA-Z0-9_]*$"

_LABEL_NAME = re.compile(LABEL_NAME_PATTERN)


class MetricKind(str, Enum):
    """Supported Prometheus metric types.

    Example:
        >>> MetricKind("gauge")
        <MetricKind.GAUGE: 'gauge'>
    """

    GAUGE = "gauge"
    COUNTER = "counter"


class MetricSpec(MetricSpineModel):
    """Immutable metric definition.

    Attributes:
        name: Prometheus metric name.
        kind: Gauge or counter (``type`` in configuration files).
        help: Help text shown in the exposition.
        value: Result field holding the numeric value.
        labels: Result fields used as label values, in label order.
        database: Database the pipeline runs against.
        collection: Collection the pipeline runs against.
        pipeline: Aggregation pipeline stages.
        interval: Refresh interval in seconds (None uses the default).
        realtime: Refresh on change events instead of an interval.
    """

    name: str = Field(..., min_length=1, pattern=METRIC_NAME_PATTERN)
    kind: MetricKind = Field(..., alias="type")
    help: str = ""
    value: str = Field(..., min_length=1)
    labels: tuple[str, ...] = ()
    database: str = Field(..., min_length=1)
    collection: str = Field(..., min_length=1)
    pipeline: list[dict[str, Any]] = Field(default_factory=list)
    interval: float | None = Field(default=None, gt=0)
    realtime: bool = False

    @field_validator("pipeline", mode="before")
    @classmethod
    def _parse_pipeline(cls, value: Any) -> Any:
        # Pipelines are commonly stored as MongoDB Extended JSON strings
        if isinstance(value, str):
            try:
                value = json_util.loads(value)
            except ValueError as e:
                raise ValueError(f"pipeline is not valid extended JSON: {e}") from e
        if isinstance(value, dict):
            raise ValueError("pipeline has to be a list of stages")
        return value

    @field_validator("labels")
    @classmethod
    def _unique_labels(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError("label fields have to be unique")
        for label in value:
            if not _LABEL_NAME.match(label) or label.startswith("__"):
                raise ValueError(f"invalid label name {label!r}")
        return value

    @model_validator(mode="after")
    def _exclusive_refresh(self) -> MetricSpec:
        if self.realtime and self.interval is not None:
            raise ValueError("a realtime metric cannot also define an interval")
        return self

    @property
    def namespace(self) -> Namespace:
        """The ``(database, collection)`` this metric reads from."""
        return Namespace(self.database, self.collection)

    @property
    def labeled(self) -> bool:
        return bool(self.labels)


__all__ = ["LABEL_NAME_PATTERN", "METRIC_NAME_PATTERN", "MetricKind", "MetricSpec"]
