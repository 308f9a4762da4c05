"""Metric refresh scheduling.

Example:
    >>> from metricspine.scheduler import RefreshScheduler
    >>>
    >>> scheduler = RefreshScheduler(specs, backend, backend, registry)
    >>> await scheduler.start()
"""

from metricspine.scheduler.refresh import (
    DEFAULT_INTERVAL,
    Metric,
    MetricState,
    RefreshScheduler,
    resolve_interval,
)

__all__ = [
    "DEFAULT_INTERVAL",
    "Metric",
    "MetricState",
    "RefreshScheduler",
    "resolve_interval",
]
