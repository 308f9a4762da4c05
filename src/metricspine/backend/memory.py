"""In-memory backend implementation.

This module provides an in-process backend for development and testing.
Result sets are configured per namespace and change events are published
by hand.

Example:
    >>> import asyncio
    >>> from metricspine.backend.memory import MemoryBackend
    >>> from metricspine.models.base import Namespace
    >>> backend = MemoryBackend()
    >>> backend.set_results(Namespace("shop", "orders"), [{"count": 42}])
    >>> async def run():
    ...     return [r async for r in backend.aggregate(Namespace("shop", "orders"), [])]
    >>> asyncio.run(run())
    [{'count': 42}]
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from metricspine.core.exceptions import BackendError
from metricspine.models.events import ChangeEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping, Sequence

    from metricspine.models.base import Namespace
    from metricspine.models.events import ResultRecord

_CLOSED = object()


class MemoryBackend:
    """In-memory backend.

    Stores result records per namespace and fans published change events out
    to every live watcher of that namespace. Every call is recorded so tests
    can assert on what the engine did.

    Attributes:
        queries: ``(namespace, pipeline)`` for every aggregate() call.
        watched: Namespace of every watch() call, in call order.

    Example:
        >>> from metricspine.models.base import Namespace
        >>> backend = MemoryBackend()
        >>> backend.watcher_count(Namespace("ops", "queues"))
        0
    """

    def __init__(
        self,
        results: Mapping[Namespace, Iterable[ResultRecord]] | None = None,
    ) -> None:
        self._results: dict[Namespace, list[dict[str, Any]]] = {}
        self._query_errors: dict[Namespace, Exception] = {}
        self._watchers: dict[Namespace, list[asyncio.Queue[Any]]] = defaultdict(list)
        self._connected = False
        self.queries: list[tuple[Namespace, list[dict[str, Any]]]] = []
        self.watched: list[Namespace] = []

        for namespace, records in (results or {}).items():
            self.set_results(namespace, records)

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Mark the backend connected. Idempotent."""
        self._connected = True

    async def close(self) -> None:
        """End every live watch and mark the backend closed. Idempotent."""
        for queues in self._watchers.values():
            for queue in queues:
                queue.put_nowait(_CLOSED)
        self._connected = False

    def set_results(self, namespace: Namespace, records: Iterable[ResultRecord]) -> None:
        """Replace the records every aggregate() on ``namespace`` yields."""
        self._results[namespace] = [dict(record) for record in records]

    def fail_queries(self, namespace: Namespace, error: Exception | None = None) -> None:
        """Make every aggregate() on ``namespace`` raise ``error``."""
        self._query_errors[namespace] = error or BackendError(f"aggregate on {namespace} failed")

    def restore_queries(self, namespace: Namespace) -> None:
        """Undo fail_queries() for ``namespace``."""
        self._query_errors.pop(namespace, None)

    async def aggregate(
        self,
        namespace: Namespace,
        pipeline: Sequence[dict[str, Any]],
    ) -> AsyncIterator[ResultRecord]:
        """Yield copies of the records configured for ``namespace``.

        The pipeline is recorded but not evaluated.
        """
        self.queries.append((namespace, list(pipeline)))
        error = self._query_errors.get(namespace)
        if error is not None:
            raise error

        for record in list(self._results.get(namespace, [])):
            yield dict(record)

    async def watch(self, namespace: Namespace) -> AsyncIterator[ChangeEvent]:
        """Yield events published for ``namespace`` until closed or broken."""
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._watchers[namespace].append(queue)
        self.watched.append(namespace)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self._watchers[namespace].remove(queue)

    def publish(self, namespace: Namespace, operation: str = "insert") -> int:
        """Publish a change event to every watcher of ``namespace``.

        Returns:
            Number of watchers the event was delivered to.
        """
        queues = self._watchers.get(namespace, [])
        event = ChangeEvent(namespace=namespace, operation=operation)
        for queue in queues:
            queue.put_nowait(event)
        return len(queues)

    def break_subscriptions(self, namespace: Namespace, error: Exception | None = None) -> int:
        """Fail every live watch on ``namespace`` with ``error``.

        Returns:
            Number of watchers that were failed.
        """
        queues = self._watchers.get(namespace, [])
        error = error or BackendError(f"change stream on {namespace} failed")
        for queue in queues:
            queue.put_nowait(error)
        return len(queues)

    def watcher_count(self, namespace: Namespace) -> int:
        """Number of live watches on ``namespace``."""
        return len(self._watchers.get(namespace, []))


__all__ = ["MemoryBackend"]
