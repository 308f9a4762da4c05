"""Base models and shared types.

Example:
    >>> from metricspine.models.base import Namespace
    >>> ns = Namespace("shop", "orders")
    >>> str(ns)
    'shop.orders'
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


class MetricSpineModel(BaseModel):
    """Base model with standard configuration.

    Models are immutable once validated.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )


@dataclass(frozen=True)
class Namespace:
    """A ``(database, collection)`` pair.

    The addressable source of both aggregation queries and change events.
    Hashable, so it can key subscription registries.

    Example:
        >>> a = Namespace("ops", "queues")
        >>> a == Namespace("ops", "queues")
        True
        >>> {a, Namespace("ops", "queues")} == {a}
        True
    """

    database: str
    collection: str

    def __str__(self) -> str:
        return f"{self.database}.{self.collection}"
