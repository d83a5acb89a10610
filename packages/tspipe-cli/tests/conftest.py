"""Shared test fixtures for tspipe-cli tests.

Provides CliRunner fixtures, an on-disk sample project and the in-memory
toolchain patched in place of ``tsc``.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from testing.fixtures.toolchain import FakeToolchain
from tspipe_cli import runner

CONFIG_FILENAME = "tspipe.yaml"


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Create a Click test runner with an isolated filesystem."""
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def fake_toolchain(monkeypatch: pytest.MonkeyPatch) -> FakeToolchain:
    """Replace the tsc toolchain with the in-memory one."""
    toolchain = FakeToolchain()
    monkeypatch.setattr(runner, "create_toolchain", lambda config: toolchain)
    return toolchain


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project with two sources and a default tspipe.yaml.

    Layout:
        tspipe.yaml
        src/main.ts
        src/lib/util.ts
    """
    (tmp_path / "src" / "lib").mkdir(parents=True)
    (tmp_path / "src" / "main.ts").write_text("let main = 1;\n")
    (tmp_path / "src" / "lib" / "util.ts").write_text("let util = 2;\n")
    (tmp_path / CONFIG_FILENAME).write_text("name: sample\n")
    return tmp_path


@pytest.fixture
def config_file(project_dir: Path) -> Path:
    return project_dir / CONFIG_FILENAME
