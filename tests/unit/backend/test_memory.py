"""Tests for MemoryBackend."""

from __future__ import annotations

import asyncio

import pytest

from metricspine.backend.memory import MemoryBackend
from metricspine.core.exceptions import BackendError
from metricspine.models.base import Namespace
from metricspine.models.events import ChangeEvent
from metricspine.protocols.backend import Backend, ChangeSubscriber, QueryExecutor

pytestmark = pytest.mark.asyncio

NS = Namespace("ops", "queues")


class TestMemoryBackendProtocol:
    async def test_implements_protocols(self) -> None:
        backend = MemoryBackend()

        assert isinstance(backend, QueryExecutor)
        assert isinstance(backend, ChangeSubscriber)
        assert isinstance(backend, Backend)

    async def test_connect_and_close_are_idempotent(self) -> None:
        backend = MemoryBackend()

        await backend.connect()
        await backend.connect()
        assert backend.connected is True

        await backend.close()
        await backend.close()
        assert backend.connected is False


class TestMemoryAggregate:
    async def test_yields_copies(self) -> None:
        backend = MemoryBackend({NS: [{"depth": 1}, {"depth": 2}]})

        records = [r async for r in backend.aggregate(NS, [{"$match": {}}])]
        records[0]["depth"] = 99

        assert [r async for r in backend.aggregate(NS, [])] == [{"depth": 1}, {"depth": 2}]
        assert backend.queries == [(NS, [{"$match": {}}]), (NS, [])]

    async def test_unknown_namespace_is_empty(self) -> None:
        backend = MemoryBackend()

        assert [r async for r in backend.aggregate(NS, [])] == []

    async def test_injected_failure(self) -> None:
        backend = MemoryBackend({NS: [{"depth": 1}]})
        backend.fail_queries(NS)

        with pytest.raises(BackendError):
            _ = [r async for r in backend.aggregate(NS, [])]

        backend.restore_queries(NS)
        assert [r async for r in backend.aggregate(NS, [])] == [{"depth": 1}]


class TestMemoryWatch:
    async def test_publish_reaches_watchers(self) -> None:
        backend = MemoryBackend()
        stream = backend.watch(NS)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        assert backend.publish(NS, "update") == 1
        event = await asyncio.wait_for(pending, timeout=1)

        assert event == ChangeEvent(NS, "update")
        await stream.aclose()
        assert backend.watcher_count(NS) == 0

    async def test_publish_without_watchers(self) -> None:
        assert MemoryBackend().publish(NS) == 0

    async def test_break_raises_in_watcher(self) -> None:
        backend = MemoryBackend()
        stream = backend.watch(NS)
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        backend.break_subscriptions(NS, ConnectionError("reset"))

        with pytest.raises(ConnectionError, match="reset"):
            await asyncio.wait_for(pending, timeout=1)
        assert backend.watcher_count(NS) == 0

    async def test_close_ends_watchers(self) -> None:
        backend = MemoryBackend()

        async def consume() -> list[ChangeEvent]:
            return [event async for event in backend.watch(NS)]

        task = asyncio.ensure_future(consume())
        await asyncio.sleep(0)
        backend.publish(NS)
        await backend.close()

        assert await asyncio.wait_for(task, timeout=1) == [ChangeEvent(NS, "insert")]
