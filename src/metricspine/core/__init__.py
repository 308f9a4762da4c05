"""Core configuration, errors and process wiring.

The Exporter lives in ``metricspine.core.exporter`` and is imported from
there, since it depends on every other subpackage.
"""

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

__all__ = [
    "BackendError",
    "ConfigurationError",
    "ExtractionError",
    "InitializationError",
    "MetricSpineError",
    "MissingFieldError",
    "ObservationError",
    "StartupError",
    "TypeMismatchError",
]
