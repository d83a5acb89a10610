"""tspipe build command - Compile the project once."""

from __future__ import annotations

from pathlib import Path

import click

from tspipe_cli.errors import handle_permission_error, load_config


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
def build(file_path: str, out_dir: str | None) -> None:
    """Compile the sources listed in tspipe.yaml.

    Exits with 1 when the compiler reports errors and with 2 when the
    compiler cannot run or a required file cannot be read.

    Examples:

        tspipe build

        tspipe build --out dist/
    """
    config = load_config(file_path)

    # Import here to avoid heavy imports at CLI startup
    from tspipe_cli.runner import BuildSession, report_result

    session = BuildSession(config, Path(file_path).resolve().parent, out_dir=out_dir)
    try:
        result = session.build()
    except PermissionError:
        handle_permission_error(str(session.out_dir), "write to")

    report_result(result)
    if result.exit_code:
        raise SystemExit(result.exit_code)
