"""Utility modules for MetricSpine."""

from metricspine.utils.retry import RetryConfig, with_retry

__all__ = ["RetryConfig", "with_retry"]
