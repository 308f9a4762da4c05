"""Turn aggregation result records into observations.

Values decoded from BSON arrive dynamically typed. Every scalar is first
classified into a small closed set of kinds, and extraction accepts or
rejects it based on that kind only:

- metric values have to be integers (BSON int32 or int64)
- label values have to be strings

Floating point values are rejected as metric values, matching what the
exporter has always accepted.

Example:
    >>> from metricspine.metrics.extractor import extract_observation
    >>> from metricspine.models.metric import MetricSpec
    >>> spec = MetricSpec(
    ...     name="queue_depth", type="gauge", value="depth", labels=["region"],
    ...     database="ops", collection="queues", realtime=True,
    ... )
    >>> extract_observation({"region": "us-east", "depth": 7}, spec)
    Observation(value=7.0, labels=('us-east',))
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from bson.decimal128 import Decimal128

from metricspine.core.exceptions import MissingFieldError, TypeMismatchError
from metricspine.models.events import Observation

if TYPE_CHECKING:
    from metricspine.models.events import ResultRecord
    from metricspine.models.metric import MetricSpec

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ScalarKind(str, Enum):
    """Classification of a decoded result scalar.

    Example:
        >>> classify_scalar(42)
        <ScalarKind.INTEGER: 'integer'>
        >>> classify_scalar(4.2)
        <ScalarKind.FLOATING: 'floating'>
        >>> classify_scalar(True)
        <ScalarKind.OTHER: 'other'>
    """

    INTEGER = "integer"
    FLOATING = "floating"
    STRING = "string"
    OTHER = "other"


def classify_scalar(value: Any) -> ScalarKind:
    """Classify a decoded scalar.

    ``bool`` is a subclass of ``int`` in Python but a distinct BSON type, so
    it is classified as OTHER. Integers outside the 64-bit range cannot come
    from BSON and are classified as OTHER as well.
    """
    if isinstance(value, bool):
        return ScalarKind.OTHER
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return ScalarKind.INTEGER
        return ScalarKind.OTHER
    if isinstance(value, (float, Decimal, Decimal128)):
        return ScalarKind.FLOATING
    if isinstance(value, str):
        return ScalarKind.STRING
    return ScalarKind.OTHER


def extract_value(record: ResultRecord, field: str) -> float:
    """Read the metric value from ``record``.

    Raises:
        MissingFieldError: If ``field`` is absent.
        TypeMismatchError: If ``field`` is not an integer.
    """
    if field not in record:
        raise MissingFieldError(field)

    raw = record[field]
    kind = classify_scalar(raw)
    if kind is not ScalarKind.INTEGER:
        raise TypeMismatchError(field, expected=ScalarKind.INTEGER.value, actual=type(raw).__name__)
    return float(raw)


def extract_labels(record: ResultRecord, fields: tuple[str, ...]) -> tuple[str, ...]:
    """Read label values from ``record`` in the order of ``fields``.

    Raises:
        MissingFieldError: If any label field is absent.
        TypeMismatchError: If any label field is not a string.
    """
    values: list[str] = []
    for field in fields:
        if field not in record:
            raise MissingFieldError(field)

        raw = record[field]
        if classify_scalar(raw) is not ScalarKind.STRING:
            raise TypeMismatchError(field, expected=ScalarKind.STRING.value, actual=type(raw).__name__)
        values.append(raw)
    return tuple(values)


def extract_observation(record: ResultRecord, spec: MetricSpec) -> Observation:
    """Extract the value and label values ``spec`` asks for.

    Pure and idempotent; the record is not modified.
    """
    value = extract_value(record, spec.value)
    labels = extract_labels(record, spec.labels) if spec.labels else ()
    return Observation(value=value, labels=labels)


__all__ = [
    "ScalarKind",
    "classify_scalar",
    "extract_labels",
    "extract_observation",
    "extract_value",
]
