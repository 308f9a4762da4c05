"""CLI entry point."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from metricspine.core.exceptions import ConfigurationError, StartupError

app = typer.Typer(
    name="metricspine",
    help="Prometheus exporter for MongoDB aggregation pipelines",
    no_args_is_help=True,
)
console = Console()


def _abort(error: Exception, code: int) -> typer.Exit:
    console.print(f"[red]error:[/red] {escape(str(error))}")
    return typer.Exit(code=code)


@app.command()
def version() -> None:
    """Show version."""
    from metricspine import __version__

    console.print(f"metricspine {__version__}")


@app.command()
def info() -> None:
    """Show system information."""
    import sys

    from metricspine import __version__

    console.print(f"[bold]MetricSpine[/bold] {__version__}")
    console.print(f"Python {sys.version}")


@app.command()
def check(
    config: Path = typer.Argument(..., help="Path to the metrics file"),
) -> None:
    """Validate a metrics file and list its metrics."""
    from metricspine.core.config import load_metrics_config
    from metricspine.scheduler.refresh import resolve_interval

    try:
        metrics_config = load_metrics_config(config)
    except ConfigurationError as e:
        raise _abort(e, 1) from e

    table = Table(title=str(config))
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Namespace")
    table.add_column("Labels")
    table.add_column("Refresh")

    default_interval = metrics_config.options.default_interval
    for spec in metrics_config.metrics:
        refresh = "realtime" if spec.realtime else f"{resolve_interval(spec, default_interval):g}s"
        table.add_row(spec.name, spec.kind.value, str(spec.namespace), ", ".join(spec.labels), refresh)
    console.print(table)

    for error in metrics_config.rejected:
        console.print(f"[red]rejected:[/red] {escape(str(error))}")

    if not metrics_config.metrics:
        console.print("[yellow]no metrics have been configured[/yellow]")
    if metrics_config.rejected:
        raise typer.Exit(code=1)


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to the metrics file"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port of the metrics endpoint"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    subscription_retry: int | None = typer.Option(
        None, "--subscription-retry", help="Times a change stream is opened before giving up"
    ),
) -> None:
    """Run the exporter."""
    from pydantic import ValidationError

    from metricspine.core.config import get_settings, load_metrics_config
    from metricspine.core.exporter import Exporter
    from metricspine.core.logging import configure_logging

    overrides = {
        key: value
        for key, value in {
            "config_file": config,
            "listen_port": port,
            "log_level": log_level,
            "subscription_retry_attempts": subscription_retry,
        }.items()
        if value is not None
    }
    try:
        settings = get_settings(**overrides)
    except ValidationError as e:
        raise _abort(e, 1) from e
    configure_logging(settings.log_level, settings.log_format)

    try:
        metrics_config = load_metrics_config(settings.config_file)
    except ConfigurationError as e:
        raise _abort(e, 1) from e

    exporter = Exporter(settings, metrics_config)
    try:
        asyncio.run(exporter.run())
    except StartupError as e:
        raise _abort(e, 2) from e


if __name__ == "__main__":
    app()
