"""MongoDB backend.

Runs aggregation pipelines and opens change streams through pymongo's
native asyncio client. One client is created per backend and shared by
every refresh and subscription task.

Example:
    >>> from metricspine.backend.mongodb import MongoBackend
    >>> backend = MongoBackend("mongodb://localhost:27017", connection_timeout=5)
    >>> await backend.connect()
    >>> async for record in backend.aggregate(Namespace("shop", "orders"), pipeline):
    ...     print(record)

Note:
    Change streams require a replica set or sharded cluster.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from metricspine.core.exceptions import StartupError
from metricspine.models.events import ChangeEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pymongo.asynchronous.collection import AsyncCollection

    from metricspine.models.base import Namespace
    from metricspine.models.events import ResultRecord

logger = logging.getLogger(__name__)

DEFAULT_URI = "mongodb://localhost:27017"


class MongoBackend:
    """MongoDB query executor and change subscriber.

    Args:
        uri: MongoDB connection string.
        connection_timeout: Seconds allowed for the initial connection.
        max_connections: Connection pool size (None keeps the driver default).
        **client_kwargs: Additional kwargs for AsyncMongoClient.

    Example:
        >>> backend = MongoBackend(max_connections=10)
        >>> backend.uri
        'mongodb://localhost:27017'
    """

    def __init__(
        self,
        uri: str = DEFAULT_URI,
        *,
        connection_timeout: float = 10.0,
        max_connections: int | None = None,
        **client_kwargs: Any,
    ) -> None:
        self._uri = uri or DEFAULT_URI
        self._connection_timeout = connection_timeout
        self._max_connections = max_connections
        self._client_kwargs = client_kwargs
        self._client: AsyncMongoClient | None = None

    @property
    def uri(self) -> str:
        return self._uri

    async def connect(self) -> None:
        """Create the client and ping the server.

        Raises:
            StartupError: If the URI is invalid or the server does not
                answer within the connection timeout.
        """
        timeout_ms = int(self._connection_timeout * 1000)
        kwargs: dict[str, Any] = {
            "serverSelectionTimeoutMS": timeout_ms,
            "connectTimeoutMS": timeout_ms,
            **self._client_kwargs,
        }
        if self._max_connections:
            kwargs["maxPoolSize"] = self._max_connections

        logger.info(
            "connect to mongodb using uri %s, connect_timeout=%ss",
            self._uri,
            self._connection_timeout,
        )
        try:
            self._client = AsyncMongoClient(self._uri, **kwargs)
            await asyncio.wait_for(
                self._client.admin.command("ping"),
                timeout=self._connection_timeout,
            )
        except (PyMongoError, TimeoutError) as e:
            await self.close()
            raise StartupError(f"mongodb at {self._uri} is not reachable: {e}") from e

    async def close(self) -> None:
        """Close the client. Idempotent."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _collection(self, namespace: Namespace) -> AsyncCollection:
        if self._client is None:
            raise RuntimeError("MongoBackend is not connected, call connect() first")
        return self._client[namespace.database][namespace.collection]

    async def aggregate(
        self,
        namespace: Namespace,
        pipeline: Sequence[dict[str, Any]],
    ) -> AsyncIterator[ResultRecord]:
        """Run ``pipeline`` and yield result documents.

        The cursor is closed however iteration ends. Driver errors propagate
        unmodified.
        """
        logger.debug("aggregate pipeline %s on %s", list(pipeline), namespace)
        cursor = await self._collection(namespace).aggregate(list(pipeline))
        try:
            async for document in cursor:
                yield document
        finally:
            await cursor.close()

    async def watch(self, namespace: Namespace) -> AsyncIterator[ChangeEvent]:
        """Open a change stream on ``namespace`` and yield its events.

        Change documents without a collection namespace are skipped.
        """
        stream = await self._collection(namespace).watch()
        try:
            async for document in stream:
                event = ChangeEvent.from_document(document)
                if event is None:
                    logger.error(
                        "skip change event without namespace on %s: %s",
                        namespace,
                        document.get("operationType"),
                    )
                    continue
                yield event
        finally:
            await stream.close()


__all__ = ["DEFAULT_URI", "MongoBackend"]
