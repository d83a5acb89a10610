"""tspipe watch command - Rebuild whenever a source file changes."""

from __future__ import annotations

import time
from pathlib import Path

import click

from tspipe_cli.errors import load_config
from tspipe_cli.output import error, info


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default="./tspipe.yaml",
    help="Path to tspipe.yaml [default: ./tspipe.yaml]",
)
@click.option(
    "-o",
    "--out",
    "out_dir",
    type=click.Path(),
    default=None,
    help="Output directory [default: outDir from tspipe.yaml]",
)
@click.option(
    "--debounce",
    type=click.FloatRange(min=0),
    default=0.2,
    help="Seconds to wait for further changes before rebuilding [default: 0.2]",
)
def watch(file_path: str, out_dir: str | None, debounce: float) -> None:
    """Build, then rebuild on every change to a .ts file.

    The same project is reused across builds, so a change that leaves
    the sources identical replays the previous output.

    Examples:

        tspipe watch

        tspipe watch --debounce 1
    """
    config = load_config(file_path)

    # Import here to avoid heavy imports at CLI startup
    from tspipe_cli.runner import BuildSession, report_result
    from tspipe_cli.watcher import SourceWatcher

    root = Path(file_path).resolve().parent
    session = BuildSession(config, root, out_dir=out_dir)

    def rebuild() -> None:
        report_result(session.build())

    rebuild()

    watcher = SourceWatcher(
        root,
        rebuild,
        debounce_seconds=debounce,
        ignore=[session.out_dir, session.declaration_dir],
        on_error=lambda e: error(f"Rebuild failed: {e}"),
    )
    info("Watching for changes (press Ctrl+C to stop)")
    with watcher:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
    info("Stopped watching")
