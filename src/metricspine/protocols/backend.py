"""Backend protocols.

The refresh engine needs two capabilities from the data store: running an
aggregation pipeline and watching a namespace for changes. Both are async
generators so any store can be plugged in.

Example:
    >>> from metricspine.protocols.backend import QueryExecutor, ChangeSubscriber
    >>> from metricspine.backend.memory import MemoryBackend
    >>> backend = MemoryBackend()
    >>> isinstance(backend, QueryExecutor), isinstance(backend, ChangeSubscriber)
    (True, True)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from metricspine.models.base import Namespace
    from metricspine.models.events import ChangeEvent, ResultRecord


@runtime_checkable
class QueryExecutor(Protocol):
    """Runs aggregation pipelines."""

    def aggregate(
        self,
        namespace: Namespace,
        pipeline: Sequence[dict[str, Any]],
    ) -> AsyncGenerator[ResultRecord, None]:
        """Run ``pipeline`` against ``namespace`` and yield result records.

        Each call opens a fresh cursor and releases it when iteration ends,
        fails, or the iterator is closed early. Backend errors propagate
        unmodified.
        """
        ...


@runtime_checkable
class ChangeSubscriber(Protocol):
    """Watches namespaces for changes."""

    def watch(self, namespace: Namespace) -> AsyncGenerator[ChangeEvent, None]:
        """Yield a ChangeEvent for every mutation in ``namespace``.

        The iterator is unbounded. It ends by raising the backend error if
        the subscription fails.
        """
        ...


@runtime_checkable
class Backend(QueryExecutor, ChangeSubscriber, Protocol):
    """A data store offering both capabilities plus a lifecycle."""

    async def connect(self) -> None:
        """Connect and verify the backend is reachable.

        Raises:
            StartupError: If the backend cannot be reached.
        """
        ...

    async def close(self) -> None:
        """Release the connection. Idempotent."""
        ...
