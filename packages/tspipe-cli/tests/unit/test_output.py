"""Unit tests for tspipe_cli.output module."""

from __future__ import annotations

from collections.abc import Generator
from unittest.mock import patch

import pytest

from tspipe_cli import output


@pytest.fixture
def plain_console() -> Generator[None, None, None]:
    """Swap the module console for one without colors."""
    original_console = output.console
    output.console = output.create_console(no_color=True)
    try:
        yield
    finally:
        output.console = original_console


class TestCreateConsole:
    """Tests for create_console function."""

    def test_create_console_no_color(self) -> None:
        console = output.create_console(no_color=True)
        assert console.no_color is True

    def test_create_console_respects_env_var(self) -> None:
        with patch.object(output, "_force_no_color", True):
            console = output.create_console()
        assert console.no_color is True


@pytest.mark.usefixtures("plain_console")
class TestMessages:
    """Tests for the message helpers."""

    def test_success(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.success("Built 3 file(s)")

        captured = capsys.readouterr()
        assert "✓ Built 3 file(s)" in captured.out

    def test_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.error("Build aborted")

        captured = capsys.readouterr()
        assert "✗ Build aborted" in captured.out

    def test_warning(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.warning("No source files matched")

        captured = capsys.readouterr()
        assert "⚠ No source files matched" in captured.out


@pytest.mark.usefixtures("plain_console")
class TestDiagnostic:
    """Tests for diagnostic() function."""

    def test_markup_is_not_interpreted(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.diagnostic("a.ts(1,5): 2322 Type '[string]' is not assignable to type '[bold]'.")

        captured = capsys.readouterr()
        assert "Type '[string]'" in captured.out
        assert "type '[bold]'" in captured.out

    def test_error_marker(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.diagnostic("a.ts(1,1): 2304 Cannot find name 'x'.")

        assert "✗" in capsys.readouterr().out

    def test_warning_marker(self, capsys: pytest.CaptureFixture[str]) -> None:
        output.diagnostic("a.ts(1,1): 6133 'x' is declared but never used.", is_error=False)

        assert "⚠" in capsys.readouterr().out


class TestSetNoColor:
    def test_replaces_console(self) -> None:
        original_console = output.console
        try:
            output.set_no_color(True)
            assert output.console is not original_console
            assert output.console.no_color is True
        finally:
            output.console = original_console
