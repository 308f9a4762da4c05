"""Custom exceptions.

MetricSpine uses a hierarchy of exceptions so that per-record, per-metric
and process-wide failures can be told apart:

Example:
    >>> from metricspine.core.exceptions import MissingFieldError, ExtractionError
    >>> isinstance(MissingFieldError("count"), MetricSpineError)
    True
    >>> try:
    ...     raise MissingFieldError("count")
    ... except ExtractionError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: MissingFieldError
"""

from __future__ import annotations


class MetricSpineError(Exception):
    """Base exception for MetricSpine.

    Example:
        >>> from metricspine.core.exceptions import MetricSpineError
        >>> e = MetricSpineError("something went wrong")
        >>> str(e)
        'something went wrong'
    """


class ConfigurationError(MetricSpineError):
    """Configuration is unreadable or invalid.

    Example:
        >>> from metricspine.core.exceptions import ConfigurationError
        >>> raise ConfigurationError("missing file")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ConfigurationError: missing file
    """


class InitializationError(MetricSpineError):
    """A metric could not be initialized.

    The metric is excluded from scheduling, other metrics are unaffected.

    Example:
        >>> from metricspine.core.exceptions import InitializationError
        >>> e = InitializationError("orders_total", "duplicated name")
        >>> e.metric
        'orders_total'
        >>> str(e)
        'failed to initialize metric orders_total: duplicated name'
    """

    def __init__(self, metric: str, reason: str) -> None:
        self.metric = metric
        self.reason = reason
        super().__init__(f"failed to initialize metric {metric}: {reason}")


class ExtractionError(MetricSpineError):
    """A result record could not be turned into an observation.

    Attributes:
        field: Name of the record field that caused the failure.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class MissingFieldError(ExtractionError):
    """A required field is absent from the result record.

    Example:
        >>> from metricspine.core.exceptions import MissingFieldError
        >>> str(MissingFieldError("count"))
        'field count not found in result record'
    """

    def __init__(self, field: str) -> None:
        super().__init__(field, f"field {field} not found in result record")


class TypeMismatchError(ExtractionError):
    """A field is present but holds an unsupported type.

    Example:
        >>> from metricspine.core.exceptions import TypeMismatchError
        >>> e = TypeMismatchError("depth", expected="integer", actual="str")
        >>> str(e)
        'field depth has to be of type integer, type str given'
    """

    def __init__(self, field: str, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(field, f"field {field} has to be of type {expected}, type {actual} given")


class ObservationError(MetricSpineError):
    """The metric sink rejected an observation (e.g. negative counter increment)."""


class BackendError(MetricSpineError):
    """A query or change subscription failed on the backend."""


class StartupError(MetricSpineError):
    """The backend cannot be reached at startup. Fatal to the process."""
