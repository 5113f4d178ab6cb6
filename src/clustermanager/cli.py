"""Cluster manager command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import click
import uvicorn
from safir.click import display_help

from .dependencies.config import config_dependency
from .main import create_app

__all__ = [
    "help",
    "main",
    "openapi_schema",
    "run",
]


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(message="%(version)s")
def main() -> None:
    """Command-line interface for the cluster manager."""


@main.command()
@click.argument("topic", default=None, required=False, nargs=1)
@click.argument("subtopic", default=None, required=False, nargs=1)
@click.pass_context
def help(ctx: click.Context, topic: str | None, subtopic: str | None) -> None:
    """Show help for any command."""
    display_help(main, ctx, topic, subtopic)


@main.command()
@click.option(
    "--config-path",
    "-c",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to the configuration file",
)
@click.option("--host", default="0.0.0.0", help="Address to listen on")
@click.option("--port", default=8080, type=int, help="Port to listen on")
def run(config_path: Path | None, host: str, port: int) -> None:
    """Start the cluster manager REST server."""
    if config_path:
        config_dependency.set_path(config_path)
    uvicorn.run(
        "clustermanager.main:create_app",
        factory=True,
        host=host,
        port=port,
    )


@main.command()
@click.option(
    "--config-path",
    "-c",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to the configuration file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="File to write the schema to, standard output if not given",
)
def openapi_schema(config_path: Path | None, output: Path | None) -> None:
    """Generate the OpenAPI schema of the REST API."""
    if config_path:
        config_dependency.set_path(config_path)
    schema = json.dumps(create_app().openapi(), indent=2)
    if output:
        output.write_text(schema + "\n")
    else:
        click.echo(schema)
