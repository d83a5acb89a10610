"""tspipe validate command - Validate tspipe.yaml configuration."""

from __future__ import annotations

from pathlib import Path

import click

from tspipe_cli.errors import load_config
from tspipe_cli.output import info, success, warning


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default="./tspipe.yaml",
    help="Path to tspipe.yaml [default: ./tspipe.yaml]",
)
def validate(file_path: str) -> None:
    """Validate tspipe.yaml configuration.

    Reports validation errors with field paths, and how many source
    files the configured patterns match.

    Examples:

        tspipe validate

        tspipe validate --file web/tspipe.yaml
    """
    config = load_config(file_path)

    from tspipe_cli.runner import collect_sources

    sources = collect_sources(config, Path(file_path).resolve().parent)
    success("Configuration valid")
    if sources:
        info(f"{len(sources)} source file(s) matched")
    else:
        warning(f"No source files match {', '.join(config.sources)}")
