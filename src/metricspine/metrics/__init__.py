"""Result extraction and Prometheus metric sinks.

Example:
    >>> from prometheus_client import CollectorRegistry
    >>> from metricspine.metrics import create_sink, extract_observation
    >>> from metricspine.models import MetricSpec
    >>>
    >>> spec = MetricSpec(
    ...     name="queue_depth", type="gauge", value="depth", labels=["region"],
    ...     database="ops", collection="queues", realtime=True,
    ... )
    >>> registry = CollectorRegistry()
    >>> sink = create_sink(spec, registry)
    >>> observation = extract_observation({"depth": 7, "region": "us-east"}, spec)
    >>> sink.apply(observation.value, observation.labels)
    >>> registry.get_sample_value("queue_depth", {"region": "us-east"})
    7.0
"""

from metricspine.metrics.extractor import (
    ScalarKind,
    classify_scalar,
    extract_labels,
    extract_observation,
    extract_value,
)
from metricspine.metrics.sink import (
    CounterSink,
    GaugeSink,
    LabeledCounterSink,
    LabeledGaugeSink,
    MetricSink,
    create_sink,
)

__all__ = [
    "CounterSink",
    "GaugeSink",
    "LabeledCounterSink",
    "LabeledGaugeSink",
    "MetricSink",
    "ScalarKind",
    "classify_scalar",
    "create_sink",
    "extract_labels",
    "extract_observation",
    "extract_value",
]
