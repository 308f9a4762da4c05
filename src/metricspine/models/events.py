"""Ephemeral values passed between the backend, extractor and scheduler."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from metricspine.models.base import Namespace

# One row of an aggregation result, field name to BSON-decoded scalar.
ResultRecord = Mapping[str, Any]


@dataclass(frozen=True)
class ChangeEvent:
    """A mutation occurred in ``namespace``.

    Example:
        >>> doc = {"operationType": "insert", "ns": {"db": "ops", "coll": "queues"}}
        >>> ChangeEvent.from_document(doc)
        ChangeEvent(namespace=Namespace(database='ops', collection='queues'), operation='insert')
        >>> ChangeEvent.from_document({"operationType": "dropDatabase", "ns": {"db": "ops"}}) is None
        True
    """

    namespace: Namespace
    operation: str = ""

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> ChangeEvent | None:
        """Build an event from a change stream document.

        Returns:
            The event, or None when the document does not name a collection.
        """
        ns = document.get("ns") or {}
        database = ns.get("db")
        collection = ns.get("coll")
        if not isinstance(database, str) or not isinstance(collection, str):
            return None
        return cls(
            namespace=Namespace(database, collection),
            operation=str(document.get("operationType", "")),
        )


@dataclass(frozen=True)
class Observation:
    """A numeric value plus label values in declared label order."""

    value: float
    labels: tuple[str, ...] = ()


__all__ = ["ChangeEvent", "Observation", "ResultRecord"]
