"""Refresh scheduler.

Decides when each configured metric is recomputed:

- interval metrics get one polling loop each: refresh, sleep, repeat
- realtime metrics are grouped by namespace and share one change
  subscription per distinct ``(database, collection)``; every change event
  refreshes all realtime metrics bound to the event namespace

Failures are isolated. A metric that fails to initialize is never
scheduled, a failed refresh stops only that metric's polling loop, and a
failed change stream stops only realtime updates for its namespace.

Example:
    >>> from prometheus_client import CollectorRegistry
    >>> from metricspine.backend.memory import MemoryBackend
    >>> from metricspine.scheduler import RefreshScheduler
    >>>
    >>> backend = MemoryBackend()
    >>> async with RefreshScheduler(specs, backend, backend, CollectorRegistry()) as scheduler:
    ...     await scheduler.wait()
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from metricspine.core.exceptions import (
    BackendError,
    ExtractionError,
    InitializationError,
    ObservationError,
)
from metricspine.metrics.extractor import extract_observation
from metricspine.metrics.sink import create_sink
from metricspine.utils.retry import with_retry

if TYPE_CHECKING:
    from collections.abc import Coroutine, Iterable

    from prometheus_client import CollectorRegistry

    from metricspine.metrics.sink import MetricSink
    from metricspine.models.base import Namespace
    from metricspine.models.events import ChangeEvent
    from metricspine.models.metric import MetricSpec
    from metricspine.protocols.backend import ChangeSubscriber, QueryExecutor
    from metricspine.utils.retry import RetryConfig

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


class MetricState(str, Enum):
    """Lifecycle state of a runtime metric.

    ``failed`` and ``stopped`` are terminal.
    """

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    POLLING = "polling"
    AWAITING_CHANGE = "awaiting_change"
    REFRESHING = "refreshing"
    FAILED = "failed"
    STOPPED = "stopped"


def resolve_interval(spec: MetricSpec, default_interval: float | None = None) -> float:
    """Seconds between refreshes of an interval metric.

    Example:
        >>> from metricspine.models.metric import MetricSpec
        >>> spec = MetricSpec(name="m", type="gauge", value="v", database="d", collection="c")
        >>> resolve_interval(spec), resolve_interval(spec, 30)
        (5.0, 30.0)
    """
    if spec.interval:
        return float(spec.interval)
    if default_interval:
        return float(default_interval)
    return DEFAULT_INTERVAL


@dataclass
class Metric:
    """A MetricSpec bound to its sink at runtime.

    ``sink`` stays None until initialization succeeds; a metric without a
    sink is never refreshed.
    """

    spec: MetricSpec
    interval: float = DEFAULT_INTERVAL
    sink: MetricSink | None = None
    state: MetricState = MetricState.UNINITIALIZED
    refresh_count: int = 0
    last_refresh: datetime | None = None
    last_error: str | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def realtime(self) -> bool:
        return self.spec.realtime

    @property
    def namespace(self) -> Namespace:
        return self.spec.namespace

    @property
    def idle_state(self) -> MetricState:
        return MetricState.AWAITING_CHANGE if self.realtime else MetricState.POLLING

    @property
    def active(self) -> bool:
        """Initialized and not yet in a terminal state."""
        return self.sink is not None and self.state not in (MetricState.FAILED, MetricState.STOPPED)

    def to_dict(self) -> dict[str, Any]:
        """Status snapshot for JSON serialization."""
        return {
            "name": self.name,
            "type": self.spec.kind.value,
            "namespace": str(self.namespace),
            "mode": "realtime" if self.realtime else "interval",
            "interval": None if self.realtime else self.interval,
            "state": self.state.value,
            "refresh_count": self.refresh_count,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
            "last_error": self.last_error,
        }


class RefreshScheduler:
    """Schedules metric refreshes by interval or change events.

    Owns one asyncio task per interval metric and one per distinct realtime
    namespace. All tasks are cancelled and joined by close().

    Args:
        specs: Metric definitions.
        executor: Runs aggregation pipelines.
        subscriber: Opens change subscriptions.
        registry: Prometheus registry the metrics are registered with.
        default_interval: Interval for metrics that do not define one.
        subscription_retry: Reopen failed change streams with backoff.
            None abandons realtime updates for the namespace on failure.

    Example:
        >>> scheduler = RefreshScheduler(specs, backend, backend, registry)
        >>> await scheduler.start()
        >>> [m.state.value for m in scheduler.metrics]
        ['polling', 'awaiting_change']
        >>> await scheduler.close()
    """

    def __init__(
        self,
        specs: Iterable[MetricSpec],
        executor: QueryExecutor,
        subscriber: ChangeSubscriber,
        registry: CollectorRegistry,
        *,
        default_interval: float | None = None,
        subscription_retry: RetryConfig | None = None,
    ) -> None:
        self._metrics = [
            Metric(spec=spec, interval=resolve_interval(spec, default_interval)) for spec in specs
        ]
        self._executor = executor
        self._subscriber = subscriber
        self._registry = registry
        self._subscription_retry = subscription_retry
        self._subscriptions: set[Namespace] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._started = False

    async def __aenter__(self) -> RefreshScheduler:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def metrics(self) -> list[Metric]:
        """All runtime metrics, in definition order."""
        return list(self._metrics)

    @property
    def subscriptions(self) -> frozenset[Namespace]:
        """Namespaces with a change subscription task."""
        return frozenset(self._subscriptions)

    @property
    def subscription_retry(self) -> RetryConfig | None:
        """Policy for reopening failed change streams, if any."""
        return self._subscription_retry

    @property
    def running(self) -> int:
        """Number of live scheduler tasks."""
        return len(self._tasks)

    def get(self, name: str) -> Metric | None:
        """Look up a runtime metric by name."""
        for metric in self._metrics:
            if metric.name == name:
                return metric
        return None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize_metrics(self) -> list[Metric]:
        """Create a sink for every metric.

        Metrics whose sink cannot be created are marked failed and logged.

        Returns:
            The successfully initialized metrics.
        """
        if not self._metrics:
            logger.warning("no metrics have been configured")
            return []

        initialized = []
        for metric in self._metrics:
            logger.info("initialize metric %s", metric.name)
            try:
                metric.sink = create_sink(metric.spec, self._registry)
            except InitializationError as e:
                metric.state = MetricState.FAILED
                metric.last_error = str(e)
                logger.error("%s", e)
                continue

            metric.state = MetricState.INITIALIZED
            initialized.append(metric)
        return initialized

    async def start(self) -> None:
        """Initialize metrics and start polling loops and change listeners.

        Does not wait for any refresh to complete.

        Raises:
            RuntimeError: If the scheduler was already started.
        """
        if self._started:
            raise RuntimeError("RefreshScheduler has already been started")
        self._started = True

        initialized = self.initialize_metrics()

        # Interval metrics get their initial value from the first loop iteration
        for metric in initialized:
            if metric.realtime:
                metric.state = MetricState.AWAITING_CHANGE
                self._spawn(self._initial_refresh(metric), name=f"initial:{metric.name}")

        self._start_pollers()
        self._start_listeners()

    async def wait(self) -> None:
        """Wait until every scheduler task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel and join every scheduler task. Idempotent."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh(self, metric: Metric) -> int:
        """Run the metric's pipeline and apply every usable record.

        Records that cannot be extracted or applied are logged and skipped.
        Refreshes of the same metric never overlap.

        Returns:
            Number of records applied to the sink.

        Raises:
            RuntimeError: If the metric has not been initialized.
            Exception: Any backend error, unmodified.
        """
        sink = metric.sink
        if sink is None:
            raise RuntimeError(f"metric {metric.name} has not been initialized")

        async with metric.lock:
            metric.state = MetricState.REFRESHING
            applied = 0
            try:
                records = self._executor.aggregate(metric.namespace, metric.spec.pipeline)
                async with aclosing(records):
                    async for record in records:
                        logger.debug("found record %s for metric %s", record, metric.name)
                        try:
                            observation = extract_observation(record, metric.spec)
                            sink.apply(observation.value, observation.labels)
                        except (ExtractionError, ObservationError) as e:
                            metric.last_error = str(e)
                            logger.error("failed to update metric %s: %s", metric.name, e)
                            continue
                        applied += 1
            except Exception as e:
                metric.last_error = str(e)
                raise
            finally:
                if metric.state is MetricState.REFRESHING:
                    metric.state = metric.idle_state

            metric.refresh_count += 1
            metric.last_refresh = datetime.now(UTC)
        return applied

    async def _initial_refresh(self, metric: Metric) -> None:
        try:
            await self.refresh(metric)
        except Exception as e:
            logger.error("failed to fetch initial value for %s with error %s", metric.name, e)

    # =========================================================================
    # Interval path
    # =========================================================================

    def _start_pollers(self) -> None:
        for metric in self._metrics:
            if metric.realtime or metric.sink is None:
                continue
            metric.state = MetricState.POLLING
            self._spawn(self._poll(metric), name=f"poll:{metric.name}")

    async def _poll(self, metric: Metric) -> None:
        while True:
            try:
                await self.refresh(metric)
            except Exception:
                logger.exception("failed to refresh metric %s, abort polling", metric.name)
                metric.state = MetricState.STOPPED
                return

            logger.debug("wait %ss to refresh metric %s", metric.interval, metric.name)
            await asyncio.sleep(metric.interval)

    # =========================================================================
    # Realtime path
    # =========================================================================

    def _register_subscriptions(self) -> list[Namespace]:
        # One pass over all metrics before any stream is opened
        pending: list[Namespace] = []
        for metric in self._metrics:
            if not metric.realtime or metric.sink is None:
                continue
            if metric.namespace in self._subscriptions:
                continue
            self._subscriptions.add(metric.namespace)
            pending.append(metric.namespace)
        return pending

    def _start_listeners(self) -> None:
        for namespace in self._register_subscriptions():
            self._spawn(self._listen(namespace), name=f"watch:{namespace}")

    async def _listen(self, namespace: Namespace) -> None:
        try:
            if self._subscription_retry is None:
                await self._consume(namespace)
            else:
                await with_retry(lambda: self._consume(namespace), self._subscription_retry)
        except Exception as e:
            logger.error("change stream on %s failed, stop realtime updates: %s", namespace, e)
            for metric in self._realtime_metrics(namespace):
                metric.state = MetricState.STOPPED
                metric.last_error = str(e)

    async def _consume(self, namespace: Namespace) -> None:
        logger.info("start change stream on %s, waiting for changes", namespace)
        events = self._subscriber.watch(namespace)
        async with aclosing(events):
            async for event in events:
                logger.debug("found new change event in %s", event.namespace)
                await self.dispatch(event)

        # Invalidated (collection dropped or renamed) or closed by the backend
        raise BackendError(f"change stream on {namespace} ended")

    def _realtime_metrics(self, namespace: Namespace) -> list[Metric]:
        return [
            metric
            for metric in self._metrics
            if metric.realtime and metric.sink is not None and metric.namespace == namespace
        ]

    async def dispatch(self, event: ChangeEvent) -> int:
        """Refresh every realtime metric bound to the event namespace.

        A failing metric is logged and does not affect the others.

        Returns:
            Number of metrics the event triggered.
        """
        matched = self._realtime_metrics(event.namespace)
        for metric in matched:
            try:
                await self.refresh(metric)
            except Exception as e:
                logger.error("failed to update metric %s, failed with error %s", metric.name, e)
        return len(matched)


__all__ = [
    "DEFAULT_INTERVAL",
    "Metric",
    "MetricState",
    "RefreshScheduler",
    "resolve_interval",
]
