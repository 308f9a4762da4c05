"""MetricSpine configuration.

Process settings are loaded from environment variables with the
METRICSPINE_ prefix. Metric definitions live in a separate JSON file.

Example:
    >>> from metricspine.core.config import get_settings
    >>> settings = get_settings(log_level="DEBUG")
    >>> settings.log_level
    'DEBUG'
    >>> settings.listen_port
    9412
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from bson import json_util
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from metricspine.core.exceptions import ConfigurationError, InitializationError
from metricspine.models.base import MetricSpineModel
from metricspine.models.metric import MetricSpec
from metricspine.utils.retry import RetryConfig

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Application settings.

    Loads from environment variables with METRICSPINE_ prefix.

    Example:
        >>> from metricspine.core.config import Settings
        >>> s = Settings(mongodb_uri="mongodb://db:27017")
        >>> s.mongodb_uri
        'mongodb://db:27017'
        >>> s.connection_timeout
        10.0
    """

    model_config = SettingsConfigDict(
        env_prefix="METRICSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URI")
    connection_timeout: float = Field(default=10.0, gt=0, description="Initial connection timeout in seconds")
    max_connections: int | None = Field(default=None, ge=1, description="Connection pool size")

    # HTTP listener
    listen_host: str = Field(default="0.0.0.0", description="Address the metrics endpoint binds to")
    listen_port: int = Field(default=9412, ge=1, le=65535)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console", description="Log format: json or console")

    # Change streams
    subscription_retry_attempts: int = Field(
        default=0, ge=0, description="Change stream open attempts, 0 or 1 never reopens"
    )
    subscription_retry_delay: float = Field(
        default=1.0, ge=0, description="Initial delay before reopening a change stream"
    )

    # Metric definitions
    config_file: Path = Field(default=Path("metrics.json"), description="Path to the metrics file")

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level has to be one of {', '.join(LOG_LEVELS)}")
        return level

    def subscription_retry(self) -> RetryConfig | None:
        """Retry policy for change streams, None when reopening is disabled."""
        if self.subscription_retry_attempts <= 1:
            return None
        return RetryConfig(
            max_attempts=self.subscription_retry_attempts,
            base_delay=self.subscription_retry_delay,
        )


def get_settings(**overrides: Any) -> Settings:
    """Get settings with optional overrides.

    Example:
        >>> from metricspine.core.config import get_settings
        >>> s = get_settings(listen_port=9000)
        >>> s.listen_port
        9000
    """
    return Settings(**overrides)


class MetricOptions(MetricSpineModel):
    """Defaults shared by all metric definitions.

    Example:
        >>> options = MetricOptions(default_database="shop")
        >>> options.apply({"name": "orders_total"})["database"]
        'shop'
    """

    default_interval: float | None = Field(default=None, gt=0)
    default_database: str | None = None
    default_collection: str | None = None

    def apply(self, definition: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``definition`` with defaults filled in."""
        resolved = dict(definition)
        if not resolved.get("database") and self.default_database:
            resolved["database"] = self.default_database
        if not resolved.get("collection") and self.default_collection:
            resolved["collection"] = self.default_collection
        return resolved


@dataclass
class MetricsConfig:
    """Parsed metrics file.

    Attributes:
        options: Shared metric defaults.
        metrics: Valid metric definitions, in file order.
        rejected: One error per definition that failed validation.
    """

    options: MetricOptions = field(default_factory=MetricOptions)
    metrics: list[MetricSpec] = field(default_factory=list)
    rejected: list[InitializationError] = field(default_factory=list)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "definition"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_metric_definitions(
    definitions: Iterable[Any],
    options: MetricOptions | None = None,
) -> tuple[list[MetricSpec], list[InitializationError]]:
    """Validate each metric definition on its own.

    An invalid definition is logged and reported, the others still load.
    A name may only be defined once; later definitions reusing it are
    rejected.

    Returns:
        The valid specs and the errors for rejected definitions.
    """
    options = options or MetricOptions()
    specs: list[MetricSpec] = []
    rejected: list[InitializationError] = []
    defined_at: dict[str, int] = {}

    for index, definition in enumerate(definitions):
        if not isinstance(definition, Mapping):
            error = InitializationError(f"metrics[{index}]", "definition has to be an object")
        else:
            name = definition.get("name") or f"metrics[{index}]"
            try:
                spec = MetricSpec.model_validate(options.apply(definition))
            except ValidationError as e:
                error = InitializationError(str(name), _describe(e))
            else:
                first = defined_at.setdefault(spec.name, index)
                if first == index:
                    specs.append(spec)
                    continue
                error = InitializationError(
                    spec.name, f"duplicate metric name, already defined by metrics[{first}]"
                )

        logger.error("%s", error)
        rejected.append(error)

    return specs, rejected


def parse_metrics_config(document: Any) -> MetricsConfig:
    """Build a MetricsConfig from a decoded metrics document.

    Raises:
        ConfigurationError: If the document structure is invalid.
    """
    if not isinstance(document, Mapping):
        raise ConfigurationError("metrics configuration has to be an object")

    try:
        options = MetricOptions.model_validate(document.get("metric_options") or {})
    except ValidationError as e:
        raise ConfigurationError(f"invalid metric_options: {_describe(e)}") from e

    definitions = document.get("metrics") or []
    if not isinstance(definitions, list):
        raise ConfigurationError("metrics has to be a list of metric definitions")

    specs, rejected = parse_metric_definitions(definitions, options)
    return MetricsConfig(options=options, metrics=specs, rejected=rejected)


def load_metrics_config(path: str | Path) -> MetricsConfig:
    """Load the metrics file at ``path``.

    The file is JSON; MongoDB Extended JSON values (``{"$date": ...}``)
    inside pipelines are decoded to their BSON types.

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read metrics file {path}: {e}") from e

    try:
        document = json_util.loads(text)
    except ValueError as e:
        raise ConfigurationError(f"metrics file {path} is not valid JSON: {e}") from e

    return parse_metrics_config(document)


__all__ = [
    "MetricOptions",
    "MetricsConfig",
    "Settings",
    "get_settings",
    "load_metrics_config",
    "parse_metric_definitions",
    "parse_metrics_config",
]
