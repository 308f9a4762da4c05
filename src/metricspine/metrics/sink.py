"""Prometheus metric sinks.

A sink wraps exactly one registered Prometheus metric and applies
observations to it. The variant (gauge or counter, labeled or unlabeled) is
chosen once, when the sink is created, so the refresh path never branches
on metric shape.

Example:
    >>> from prometheus_client import CollectorRegistry
    >>> from metricspine.metrics.sink import create_sink
    >>> from metricspine.models.metric import MetricSpec
    >>> registry = CollectorRegistry()
    >>> spec = MetricSpec(
    ...     name="orders_total", type="counter", value="count",
    ...     database="shop", collection="orders",
    ... )
    >>> sink = create_sink(spec, registry)
    >>> sink.apply(42.0)
    >>> registry.get_sample_value("orders_total")
    42.0
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from prometheus_client import Counter, Gauge

from metricspine.core.exceptions import InitializationError, ObservationError
from metricspine.models.metric import LABEL_NAME_PATTERN, METRIC_NAME_PATTERN, MetricKind

if TYPE_CHECKING:
    from prometheus_client import CollectorRegistry
    from prometheus_client.metrics import MetricWrapperBase

    from metricspine.models.metric import MetricSpec

logger = logging.getLogger(__name__)

_METRIC_NAME = re.compile(METRIC_NAME_PATTERN)
_LABEL_NAME = re.compile(LABEL_NAME_PATTERN)


@runtime_checkable
class MetricSink(Protocol):
    """Applies observations to one metric."""

    @property
    def name(self) -> str:
        """Registered metric name."""
        ...

    def apply(self, value: float, labels: tuple[str, ...] = ()) -> None:
        """Apply one observation.

        Args:
            value: Observed value.
            labels: Label values in declared label order.

        Raises:
            ObservationError: If the metric rejects the value.
        """
        ...


class _Sink:
    def __init__(self, spec: MetricSpec, metric: MetricWrapperBase) -> None:
        self._spec = spec
        self._metric = metric

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def metric(self) -> MetricWrapperBase:
        """The underlying prometheus_client metric."""
        return self._metric

    def _check_labels(self, labels: tuple[str, ...]) -> None:
        if len(labels) != len(self._spec.labels):
            raise RuntimeError(
                f"metric {self._spec.name} expects {len(self._spec.labels)} label values, "
                f"got {len(labels)}"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._spec.name!r})"


def _increment(counter: Counter, name: str, value: float) -> None:
    if value < 0:
        raise ObservationError(
            f"counter {name} can only be incremented by non-negative amounts, {value} given"
        )
    counter.inc(value)


class GaugeSink(_Sink):
    """Unlabeled gauge: set to the latest value."""

    def apply(self, value: float, labels: tuple[str, ...] = ()) -> None:
        self._check_labels(labels)
        self._metric.set(value)


class CounterSink(_Sink):
    """Unlabeled counter: add the value."""

    def apply(self, value: float, labels: tuple[str, ...] = ()) -> None:
        self._check_labels(labels)
        _increment(self._metric, self.name, value)


class LabeledGaugeSink(_Sink):
    """Labeled gauge: set the child for the label values."""

    def apply(self, value: float, labels: tuple[str, ...] = ()) -> None:
        self._check_labels(labels)
        self._metric.labels(*labels).set(value)


class LabeledCounterSink(_Sink):
    """Labeled counter: add to the child for the label values."""

    def apply(self, value: float, labels: tuple[str, ...] = ()) -> None:
        self._check_labels(labels)
        _increment(self._metric.labels(*labels), self.name, value)


_VARIANTS: dict[tuple[MetricKind, bool], tuple[type[MetricWrapperBase], type[_Sink]]] = {
    (MetricKind.GAUGE, False): (Gauge, GaugeSink),
    (MetricKind.COUNTER, False): (Counter, CounterSink),
    (MetricKind.GAUGE, True): (Gauge, LabeledGaugeSink),
    (MetricKind.COUNTER, True): (Counter, LabeledCounterSink),
}


def create_sink(spec: MetricSpec, registry: CollectorRegistry) -> MetricSink:
    """Register the metric described by ``spec`` and wrap it in a sink.

    Args:
        spec: Metric definition.
        registry: Registry the metric is registered with.

    Returns:
        The sink variant matching the metric kind and labels.

    Raises:
        InitializationError: If the name is invalid or already registered.
    """
    # prometheus_client accepts any UTF-8 name, classic scrapers do not
    if not _METRIC_NAME.match(spec.name):
        raise InitializationError(spec.name, f"invalid metric name {spec.name!r}")
    for label in spec.labels:
        if not _LABEL_NAME.match(label):
            raise InitializationError(spec.name, f"invalid label name {label!r}")

    metric_cls, sink_cls = _VARIANTS[(spec.kind, spec.labeled)]
    try:
        metric = metric_cls(
            spec.name,
            spec.help,
            labelnames=spec.labels,
            registry=registry,
        )
    except ValueError as e:
        raise InitializationError(spec.name, str(e)) from e

    logger.debug("registered %s %s with labels %s", spec.kind.value, spec.name, list(spec.labels))
    return sink_cls(spec, metric)


__all__ = [
    "CounterSink",
    "GaugeSink",
    "LabeledCounterSink",
    "LabeledGaugeSink",
    "MetricSink",
    "create_sink",
]
