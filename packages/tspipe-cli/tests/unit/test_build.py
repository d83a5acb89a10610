"""Tests for tspipe build command."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from testing.fixtures.toolchain import FakeToolchain
from tspipe_cli.commands.build import build
from tspipe_core.errors import ToolchainError


class TestBuildCommand:
    """Tests for a successful build."""

    def test_writes_javascript(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Built 2 file(s)" in result.output
        main = project_dir / "build" / "main.js"
        assert main.read_text() == "let main = 1;\n//# sourceMappingURL=main.js.map\n"
        assert (project_dir / "build" / "lib" / "util.js").exists()

    def test_writes_source_maps(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        cli_runner.invoke(build, ["--file", str(config_file)])

        main_map = json.loads((project_dir / "build" / "main.js.map").read_text())
        util_map = json.loads((project_dir / "build" / "lib" / "util.js.map").read_text())
        assert main_map["file"] == "main.js"
        assert main_map["sources"] == ["../src/main.ts"]
        assert util_map["sources"] == ["../../src/lib/util.ts"]

    def test_out_option(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        result = cli_runner.invoke(build, ["--file", str(config_file), "--out", "dist"])

        assert result.exit_code == 0
        assert (project_dir / "dist" / "main.js").exists()
        assert not (project_dir / "build").exists()

    def test_declarations(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        config_file.write_text(
            "declarationDir: types\nproject:\n  compilerOptions:\n    declaration: true\n"
        )

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 0
        assert (project_dir / "types" / "main.d.ts").exists()
        assert not (project_dir / "build" / "main.d.ts").exists()

    def test_compiler_options_forwarded(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        config_file.write_text("project:\n  compilerOptions:\n    target: ES2019\n")

        cli_runner.invoke(build, ["--file", str(config_file)])

        assert fake_toolchain.options == {"target": "ES2019"}

    def test_source_with_invalid_utf8(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        (project_dir / "src" / "main.ts").write_bytes(b"let main = '\xff';\n")

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Built 2 file(s)" in result.output

    def test_no_sources(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        config_file.write_text("sources:\n  - app/**/*.ts\n")

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 0
        assert "No source files matched" in result.output
        assert fake_toolchain.calls == 0


class TestBuildFailures:
    """Tests for exit codes on failure."""

    def test_compile_errors_exit_1(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        project_dir: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        (project_dir / "src" / "main.ts").write_text("// @error 2322 Type mismatch\nlet x;\n")

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 1
        assert "src/main.ts(1,1): 2322 Type mismatch" in result.output
        assert "1 error(s)" in result.output

    def test_toolchain_failure_exit_2(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        fake_toolchain.error = ToolchainError("TypeScript compiler not found: tsc")

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 2
        assert "TypeScript compiler not found" in result.output
        assert "Build aborted" in result.output

    def test_missing_config_exit_2(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(build, ["--file", str(tmp_path / "tspipe.yaml")])

        assert result.exit_code == 2
        assert "not found" in result.output.lower()

    def test_default_path(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(build)

        assert result.exit_code == 2
        assert "not found" in result.output.lower()

    def test_invalid_config_exit_1(
        self,
        cli_runner: CliRunner,
        config_file: Path,
        fake_toolchain: FakeToolchain,
    ) -> None:
        config_file.write_text("project:\n  sortOutput: maybe\n")

        result = cli_runner.invoke(build, ["--file", str(config_file)])

        assert result.exit_code == 1
        assert "project.sortOutput" in result.output
