"""Tests for the metricspine command line."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from metricspine import __version__
from metricspine.cli import app
from metricspine.core.exceptions import StartupError

runner = CliRunner()


def write_config(tmp_path: Path, metrics: list[dict[str, object]]) -> Path:
    path = tmp_path / "metrics.json"
    path.write_text(json.dumps({"metric_options": {"default_interval": 15}, "metrics": metrics}))
    return path


ORDERS = {
    "name": "orders_total",
    "type": "counter",
    "value": "count",
    "database": "shop",
    "collection": "orders",
    "pipeline": [{"$count": "count"}],
}
QUEUES = {
    "name": "queue_depth",
    "type": "gauge",
    "value": "depth",
    "labels": ["region"],
    "database": "ops",
    "collection": "queues",
    "realtime": True,
}


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestCheck:
    def test_valid_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["check", str(write_config(tmp_path, [ORDERS, QUEUES]))])

        assert result.exit_code == 0
        assert "orders_total" in result.output
        assert "15s" in result.output
        assert "realtime" in result.output

    def test_rejected_definition(self, tmp_path: Path) -> None:
        bad = {**ORDERS, "name": "bad", "type": "summary"}

        result = runner.invoke(app, ["check", str(write_config(tmp_path, [ORDERS, bad]))])

        assert result.exit_code == 1
        assert "rejected" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["check", str(tmp_path / "missing.json")])

        assert result.exit_code == 1
        assert "cannot read" in result.output


class TestRun:
    def test_missing_config(self, tmp_path: Path) -> None:
        with patch("metricspine.core.logging.configure_logging"):
            result = runner.invoke(app, ["run", "--config", str(tmp_path / "missing.json")])

        assert result.exit_code == 1
        assert "cannot read" in result.output

    def test_unreachable_backend_aborts(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, [ORDERS])

        with patch(
            "metricspine.core.exporter.Exporter.run",
            new=AsyncMock(side_effect=StartupError("mongodb at mongodb://localhost:27017 is not reachable")),
        ), patch("metricspine.core.logging.configure_logging"):
            result = runner.invoke(app, ["run", "--config", str(path), "--port", "9999"])

        assert result.exit_code == 2
        assert "not reachable" in result.output

    def test_unknown_log_level(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, [ORDERS])

        result = runner.invoke(app, ["run", "--config", str(path), "--log-level", "LOUD"])

        assert result.exit_code == 1
        assert "log_level" in result.output

    def test_subscription_retry_option(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, [QUEUES])

        with patch("metricspine.core.exporter.Exporter") as exporter_cls, patch(
            "metricspine.core.logging.configure_logging"
        ):
            exporter_cls.return_value.run = AsyncMock()
            result = runner.invoke(app, ["run", "--config", str(path), "--subscription-retry", "4"])

        assert result.exit_code == 0
        settings = exporter_cls.call_args.args[0]
        assert settings.subscription_retry().max_attempts == 4
        exporter_cls.return_value.run.assert_awaited_once()
