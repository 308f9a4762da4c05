"""Logging setup.

Modules log through the standard library; this only installs the root
handler once at process start.

Example:
    >>> from metricspine.core.logging import configure_logging
    >>> configure_logging("DEBUG", "json")
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from rich.logging import RichHandler


class JsonFormatter(logging.Formatter):
    """Format records as one JSON object per line.

    Example:
        >>> import logging
        >>> record = logging.LogRecord("metricspine", logging.INFO, "", 0, "hello %s", ("world",), None)
        >>> JsonFormatter().format(record)  # doctest: +ELLIPSIS
        '{"time": "...", "level": "info", "logger": "metricspine", "message": "hello world"}'
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Install the root log handler.

    Args:
        level: Log level name, case-insensitive.
        fmt: ``console`` for rich terminal output, ``json`` for one JSON
            object per line.

    Raises:
        ValueError: If ``level`` or ``fmt`` is unknown.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level {level!r}")

    handler: logging.Handler
    if fmt == "console":
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    elif fmt == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        raise ValueError(f"unknown log format {fmt!r}")

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)


__all__ = ["JsonFormatter", "configure_logging"]
