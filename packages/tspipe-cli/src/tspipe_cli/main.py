"""CLI entry point for tspipe.

This module defines the main CLI group using LazyGroup pattern
so that ``tspipe --help`` does not import the build engine.
"""

from __future__ import annotations

import importlib
from typing import Any

import click
import rich_click as rclick

from tspipe_cli import __version__
from tspipe_cli.output import set_no_color

# Configure rich-click for better help formatting
rclick.rich_click.TEXT_MARKUP = "markdown"
rclick.rich_click.SHOW_ARGUMENTS = True
rclick.rich_click.GROUP_ARGUMENTS_OPTIONS = True

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LazyGroup(rclick.RichGroup):
    """Click group that loads commands lazily.

    Commands are only imported when actually invoked, not at import time.

    Attributes:
        lazy_subcommands: Mapping of command names to module paths.
    """

    def __init__(
        self,
        *args: Any,
        lazy_subcommands: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize LazyGroup.

        Args:
            *args: Positional arguments for parent class.
            lazy_subcommands: Mapping of command name to module path.
                Format: {"build": "tspipe_cli.commands.build.build"}
            **kwargs: Keyword arguments for parent class.
        """
        super().__init__(*args, **kwargs)
        self.lazy_subcommands: dict[str, str] = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        commands = set(super().list_commands(ctx))
        commands.update(self.lazy_subcommands.keys())
        return sorted(commands)

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        cmd = super().get_command(ctx, cmd_name)  # type: ignore[arg-type]
        if cmd is not None:
            return cmd

        if cmd_name not in self.lazy_subcommands:
            return None

        module_path = self.lazy_subcommands[cmd_name]
        module_name, attr_name = module_path.rsplit(".", 1)
        mod = importlib.import_module(module_name)
        return getattr(mod, attr_name)  # type: ignore[no-any-return]


LAZY_COMMANDS = {
    "build": "tspipe_cli.commands.build.build",
    "watch": "tspipe_cli.commands.watch.watch",
    "validate": "tspipe_cli.commands.validate.validate",
}


def _configure_logging(ctx: click.Context, param: click.Parameter, value: str | None) -> None:
    if value is None:
        return
    from tspipe_core.observability import configure_logging

    configure_logging(log_level=value)


@click.command(cls=LazyGroup, lazy_subcommands=LAZY_COMMANDS)
@click.version_option(version=__version__, prog_name="tspipe")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable colored output.",
    is_eager=True,
    expose_value=False,
    callback=lambda ctx, param, value: set_no_color(value) if value else None,
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Enable structured logging at this level.",
    expose_value=False,
    callback=_configure_logging,
)
def cli() -> None:
    """tspipe - Incremental TypeScript builds.

    Compiles the sources listed in tspipe.yaml, replaying the previous
    output when nothing changed.

    **Getting Started:**

    - `tspipe validate` - Validate tspipe.yaml
    - `tspipe build` - Compile once
    - `tspipe watch` - Rebuild on every change
    """
    pass


if __name__ == "__main__":
    cli()
