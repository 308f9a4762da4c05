"""Exporter - wires settings, backend, scheduler and HTTP endpoint.

Example:
    >>> from metricspine.core.config import get_settings, load_metrics_config
    >>> from metricspine.core.exporter import Exporter
    >>> settings = get_settings()
    >>> exporter = Exporter(settings, load_metrics_config(settings.config_file))
    >>> await exporter.run()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import uvicorn
from prometheus_client import CollectorRegistry

from metricspine.api.fastapi import create_app
from metricspine.backend.mongodb import MongoBackend
from metricspine.scheduler.refresh import RefreshScheduler

if TYPE_CHECKING:
    from fastapi import FastAPI

    from metricspine.core.config import MetricsConfig, Settings
    from metricspine.protocols.backend import Backend
    from metricspine.utils.retry import RetryConfig

logger = logging.getLogger(__name__)


class Exporter:
    """Runs the refresh engine behind a scrape endpoint.

    The backend is created once and shared by every scheduler task.

    Args:
        settings: Process settings.
        config: Parsed metrics file.
        backend: Backend to use instead of a MongoBackend built from settings.
        registry: Registry to use instead of a fresh one.
        subscription_retry: Reopen failed change streams with backoff.
            Defaults to the policy built from the subscription retry
            settings.

    Example:
        >>> from metricspine.backend.memory import MemoryBackend
        >>> exporter = Exporter(settings, config, backend=MemoryBackend())
        >>> async with exporter:
        ...     print(exporter.scheduler.metrics)
    """

    def __init__(
        self,
        settings: Settings,
        config: MetricsConfig,
        *,
        backend: Backend | None = None,
        registry: CollectorRegistry | None = None,
        subscription_retry: RetryConfig | None = None,
    ) -> None:
        self._settings = settings
        self._config = config
        self._backend: Backend = backend or MongoBackend(
            settings.mongodb_uri,
            connection_timeout=settings.connection_timeout,
            max_connections=settings.max_connections,
        )
        self._registry = registry or CollectorRegistry()
        self._scheduler = RefreshScheduler(
            config.metrics,
            self._backend,
            self._backend,
            self._registry,
            default_interval=config.options.default_interval,
            subscription_retry=subscription_retry or settings.subscription_retry(),
        )
        self._app = create_app(self._scheduler, self._registry)

    async def __aenter__(self) -> Exporter:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    @property
    def app(self) -> FastAPI:
        return self._app

    async def start(self) -> None:
        """Connect to the backend and start the scheduler.

        Raises:
            StartupError: If the backend is unreachable.
        """
        await self._backend.connect()
        await self._scheduler.start()

    async def close(self) -> None:
        """Stop the scheduler and disconnect. Idempotent."""
        await self._scheduler.close()
        await self._backend.close()

    async def serve(self) -> None:
        """Serve the HTTP endpoint until the server is shut down."""
        logger.info(
            "start http listener on %s:%d",
            self._settings.listen_host,
            self._settings.listen_port,
        )
        server = uvicorn.Server(
            uvicorn.Config(
                self._app,
                host=self._settings.listen_host,
                port=self._settings.listen_port,
                log_config=None,
                log_level=self._settings.log_level.lower(),
            )
        )
        await server.serve()

    async def run(self) -> None:
        """Start, serve until shutdown, then close."""
        async with self:
            await self.serve()


__all__ = ["Exporter"]
