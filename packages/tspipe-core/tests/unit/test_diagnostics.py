"""Unit tests for diagnostic formatting and reporting."""

from __future__ import annotations

from testing.fixtures.toolchain import make_file
from tspipe_core.diagnostics import format_diagnostic, report, to_error
from tspipe_core.errors import TspipeError, TypeScriptError
from tspipe_core.models import Diagnostic
from tspipe_core.store import VirtualFileStore


class TestFormatDiagnostic:
    """Tests for format_diagnostic."""

    def test_input_path_relative_to_cwd(self, store: VirtualFileStore) -> None:
        store.add(make_file("/p/src/a.ts", ""))
        diagnostic = Diagnostic(
            file="/p/src/a.ts",
            line=3,
            column=7,
            code=2322,
            message="Type 'string' is not assignable to type 'number'.",
        )

        assert format_diagnostic(diagnostic, store) == (
            "src/a.ts(3,7): 2322 Type 'string' is not assignable to type 'number'."
        )

    def test_external_path_kept(self, store: VirtualFileStore) -> None:
        diagnostic = Diagnostic(file="/p/lib/x.d.ts", line=1, column=1, code=1005, message="';'")

        assert format_diagnostic(diagnostic, store) == "/p/lib/x.d.ts(1,1): 1005 ';'"

    def test_global_diagnostic(self) -> None:
        diagnostic = Diagnostic(code=5023, message="Unknown compiler option 'foo'.")

        assert format_diagnostic(diagnostic) == "5023 Unknown compiler option 'foo'."

    def test_file_without_position(self) -> None:
        diagnostic = Diagnostic(file="a.ts", code=6053, message="File 'b.ts' not found.")

        assert format_diagnostic(diagnostic) == "a.ts: 6053 File 'b.ts' not found."


class TestReport:
    """Tests for forwarding diagnostics to a callback."""

    def test_to_error(self) -> None:
        diagnostic = Diagnostic(file="a.ts", line=1, column=2, code=1, message="m")

        error = to_error(diagnostic)

        assert isinstance(error, TypeScriptError)
        assert error.name == "TypeScript error"
        assert error.message == "a.ts(1,2): 1 m"
        assert error.diagnostic is diagnostic

    def test_report_one_error_per_diagnostic(self) -> None:
        received: list[TspipeError] = []
        diagnostics = [
            Diagnostic(code=1, message="first"),
            Diagnostic(code=2, category="warning", message="second"),
            Diagnostic(code=3, message="third"),
        ]

        errors = report(diagnostics, received.append)

        assert errors == 2
        assert [str(e) for e in received] == ["1 first", "2 second", "3 third"]
