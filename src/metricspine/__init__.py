"""
MetricSpine - Prometheus metrics from MongoDB aggregation pipelines.

MetricSpine evaluates configured aggregation pipelines and exposes their
results as Prometheus gauges and counters. Each metric is refreshed either
on a fixed interval or immediately when its collection changes.

Key Features:
- Interval polling or change stream triggered refresh per metric
- One change stream per (database, collection), shared by all its metrics
- Labeled and unlabeled gauges and counters
- Per-metric failure isolation

Quick Start:
    >>> from prometheus_client import CollectorRegistry
    >>> from metricspine import MemoryBackend, MetricSpec, RefreshScheduler
    >>> spec = MetricSpec(
    ...     name="orders_total", type="counter", value="count",
    ...     database="shop", collection="orders", interval=5,
    ... )
    >>> backend = MemoryBackend()
    >>> scheduler = RefreshScheduler([spec], backend, backend, CollectorRegistry())
    >>> # await scheduler.start()

Architecture:
    Backends: MongoBackend, MemoryBackend
    Sinks: GaugeSink, CounterSink, LabeledGaugeSink, LabeledCounterSink
    Scheduling: RefreshScheduler
"""

# Errors
from metricspine.core.exceptions import (
    BackendError,
    ConfigurationError,
    ExtractionError,
    InitializationError,
    MetricSpineError,
    MissingFieldError,
    ObservationError,
    StartupError,
    TypeMismatchError,
)

# Models
from metricspine.models.base import Namespace
from metricspine.models.events import ChangeEvent, Observation
from metricspine.models.metric import MetricKind, MetricSpec

# Extraction and sinks
from metricspine.metrics.extractor import ScalarKind, classify_scalar, extract_observation
from metricspine.metrics.sink import MetricSink, create_sink

# Backends
from metricspine.backend.memory import MemoryBackend
from metricspine.backend.mongodb import MongoBackend
from metricspine.protocols.backend import Backend, ChangeSubscriber, QueryExecutor

# Scheduling
from metricspine.scheduler.refresh import Metric, MetricState, RefreshScheduler

# Configuration and wiring
from metricspine.core.config import MetricOptions, MetricsConfig, Settings, get_settings, load_metrics_config
from metricspine.core.exporter import Exporter

# Retry utilities
from metricspine.utils.retry import RetryConfig, with_retry

__version__ = "0.1.0"

__all__ = [
    # Errors
    "BackendError",
    "ConfigurationError",
    "ExtractionError",
    "InitializationError",
    "MetricSpineError",
    "MissingFieldError",
    "ObservationError",
    "StartupError",
    "TypeMismatchError",
    # Models
    "ChangeEvent",
    "MetricKind",
    "MetricSpec",
    "Namespace",
    "Observation",
    # Extraction and sinks
    "MetricSink",
    "ScalarKind",
    "classify_scalar",
    "create_sink",
    "extract_observation",
    # Backends
    "Backend",
    "ChangeSubscriber",
    "MemoryBackend",
    "MongoBackend",
    "QueryExecutor",
    # Scheduling
    "Metric",
    "MetricState",
    "RefreshScheduler",
    # Configuration
    "Exporter",
    "MetricOptions",
    "MetricsConfig",
    "Settings",
    "get_settings",
    "load_metrics_config",
    # Retry
    "RetryConfig",
    "with_retry",
    # Version
    "__version__",
]
