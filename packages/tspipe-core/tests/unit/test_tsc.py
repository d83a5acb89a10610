"""Unit tests for the tsc-backed toolchain.

The compiler process is replaced by a fake that "compiles" every staged
source file into its output directory, so staging, diagnostics parsing and
output mapping are exercised without Node.js.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

import pytest

from testing.fixtures.toolchain import make_file
from tspipe_core import tsc
from tspipe_core.errors import ToolchainError
from tspipe_core.host import Host, LocalFileSystem, MemoryFileSystem
from tspipe_core.models import OutputKind
from tspipe_core.store import VirtualFileStore
from tspipe_core.tsc import TscToolchain, options_to_arguments, parse_diagnostics


class FakeTsc:
    """Stands in for subprocess.run, emitting one .js and .js.map per staged file."""

    def __init__(self, returncode: int = 0, stdout: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.commands: list[list[str]] = []
        self.staged: list[str] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.commands.append(command)
        out_dir = Path(command[command.index("--outDir") + 1])
        root_dir = Path(command[command.index("--rootDir") + 1])
        for source in sorted(root_dir.rglob("*.ts")):
            relative = source.relative_to(root_dir).as_posix()
            self.staged.append(relative)
            if relative.endswith(".d.ts"):
                continue
            stem = relative[: -len(".ts")]
            target = out_dir / f"{stem}.js"
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(source.read_text() + f"//# sourceMappingURL={target.name}.map\n")
            source_map = {
                "version": 3,
                "file": target.name,
                "sourceRoot": "",
                "sources": [f"../src/{relative}"],
                "names": [],
                "mappings": "AAAA",
            }
            (out_dir / f"{stem}.js.map").write_text(json.dumps(source_map))
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, "")


@pytest.fixture
def fake_tsc(monkeypatch: pytest.MonkeyPatch) -> FakeTsc:
    fake = FakeTsc()
    monkeypatch.setattr(tsc.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(tsc.subprocess, "run", fake)
    return fake


@pytest.fixture
def host(store: VirtualFileStore) -> Host:
    store.add(make_file("/p/src/a.ts", "let a = 1;\n"))
    store.add(make_file("/p/src/b.ts", "let b = 2;\n"))
    return Host(store, MemoryFileSystem({"/p/lib/util.ts": "export const u = 1;\n"}), "/p")


class TestOptionsToArguments:
    """Tests for translating compiler options into flags."""

    def test_values(self) -> None:
        arguments = options_to_arguments(
            {"target": "ES2019", "strict": True, "noImplicitAny": False, "lib": ["es2019", "dom"]}
        )

        assert arguments == [
            "--target",
            "ES2019",
            "--strict",
            "true",
            "--noImplicitAny",
            "false",
            "--lib",
            "es2019,dom",
        ]

    def test_managed_options_skipped(self) -> None:
        assert options_to_arguments({"outDir": "x", "sourceMap": False, "outFile": "y"}) == []

    def test_none_skipped(self) -> None:
        assert options_to_arguments({"target": None}) == []


class TestParseDiagnostics:
    """Tests for reading --pretty false output."""

    def test_file_diagnostic(self) -> None:
        output = "src/a.ts(3,7): error TS2322: Type 'string' is not assignable to type 'number'.\n"

        [diagnostic] = parse_diagnostics(output)

        assert diagnostic.file == "src/a.ts"
        assert (diagnostic.line, diagnostic.column) == (3, 7)
        assert diagnostic.code == 2322
        assert diagnostic.is_error

    def test_global_diagnostic(self) -> None:
        [diagnostic] = parse_diagnostics("error TS5023: Unknown compiler option 'foo'.\n")

        assert diagnostic.file is None
        assert diagnostic.code == 5023

    def test_continuation_lines(self) -> None:
        output = (
            "src/a.ts(1,1): error TS2322: Type '{ a: string; }' is not assignable.\n"
            "  Types of property 'a' are incompatible.\n"
            "src/b.ts(2,1): warning TS6133: 'x' is declared but never used.\n"
        )

        diagnostics = parse_diagnostics(output)

        assert len(diagnostics) == 2
        assert diagnostics[0].message.endswith("\nTypes of property 'a' are incompatible.")
        assert diagnostics[1].category == "warning"


class TestTscProgram:
    """Tests for compiling through the tsc executable."""

    def test_outputs_mapped_next_to_sources(self, fake_tsc: FakeTsc, host: Host) -> None:
        program = TscToolchain().create_program(["/p/src/a.ts", "/p/src/b.ts"], {}, host)

        artifacts = program.emit()

        assert [(a.path, a.kind) for a in artifacts] == [
            ("/p/src/a.js", OutputKind.JAVASCRIPT),
            ("/p/src/a.js.map", OutputKind.SOURCE_MAP),
            ("/p/src/b.js", OutputKind.JAVASCRIPT),
            ("/p/src/b.js.map", OutputKind.SOURCE_MAP),
        ]
        assert artifacts[0].content == "let a = 1;\n//# sourceMappingURL=a.js.map\n"

    def test_source_map_sources_rebased(self, fake_tsc: FakeTsc, host: Host) -> None:
        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        source_map = json.loads(program.emit()[1].content)

        assert source_map["sources"] == ["a.ts"]
        assert source_map["file"] == "a.js"
        assert "sourceRoot" not in source_map

    def test_command_line(self, fake_tsc: FakeTsc, host: Host) -> None:
        program = TscToolchain().create_program(["/p/src/a.ts"], {"target": "ES5"}, host)
        program.get_diagnostics()

        [command] = fake_tsc.commands
        assert command[0] == "/usr/bin/tsc"
        assert command[1:3] == ["--target", "ES5"]
        assert "--sourceMap" in command
        assert command[command.index("--pretty") + 1] == "false"
        assert command[-1].endswith("a.ts")

    def test_runs_once(self, fake_tsc: FakeTsc, host: Host) -> None:
        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        program.get_diagnostics()
        program.emit()
        program.get_source_file("/p/src/a.ts")

        assert len(fake_tsc.commands) == 1

    def test_diagnostics_mapped_to_original_paths(self, fake_tsc: FakeTsc, host: Host) -> None:
        fake_tsc.returncode = 2
        fake_tsc.stdout = "src/a.ts(1,5): error TS2322: Type mismatch.\n"

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        [diagnostic] = program.get_diagnostics()
        assert diagnostic.file == "/p/src/a.ts"
        assert diagnostic.line == 1

    def test_imported_files_staged(self, fake_tsc: FakeTsc, store: VirtualFileStore) -> None:
        store.add(make_file("/p/src/a.ts", "import { u } from '../lib/util';\n"))
        host = Host(store, MemoryFileSystem({"/p/lib/util.ts": "export const u = 1;\n"}), "/p")

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)
        program.emit()

        assert fake_tsc.staged == ["lib/util.ts", "src/a.ts"]
        assert "/p/lib/util.ts" in store.externals

    def test_referenced_files(self, fake_tsc: FakeTsc, store: VirtualFileStore) -> None:
        store.add(make_file("/p/src/a.ts", '/// <reference path="b.ts" />\nlet a;\n'))
        store.add(make_file("/p/src/b.ts", "let b;\n"))
        host = Host(store, MemoryFileSystem(), "/p")

        program = TscToolchain().create_program(["/p/src/a.ts", "/p/src/b.ts"], {}, host)

        source = program.get_source_file("/p/src/a.ts")
        assert source is not None
        assert source.referenced_files == ("/p/src/b.ts",)

    def test_missing_reference_is_diagnostic(
        self,
        fake_tsc: FakeTsc,
        store: VirtualFileStore,
    ) -> None:
        store.add(make_file("/p/src/a.ts", '/// <reference path="missing.ts" />\nlet a;\n'))
        host = Host(store, MemoryFileSystem(), "/p")

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        [diagnostic] = program.get_diagnostics()
        assert diagnostic.code == 6053
        assert diagnostic.file == "/p/src/a.ts"
        assert diagnostic.line == 1

    def test_no_roots(self, fake_tsc: FakeTsc, host: Host) -> None:
        program = TscToolchain().create_program([], {}, host)

        assert program.emit() == []
        assert fake_tsc.commands == []


class TestToolchainFailures:
    """Environment failures surface as ToolchainError."""

    def test_executable_not_on_path(self, monkeypatch: pytest.MonkeyPatch, host: Host) -> None:
        monkeypatch.setattr(tsc.shutil, "which", lambda name: None)

        with pytest.raises(ToolchainError, match="TypeScript compiler not found"):
            TscToolchain("tsc").create_program(["/p/src/a.ts"], {}, host)

    def test_crash(self, fake_tsc: FakeTsc, host: Host) -> None:
        fake_tsc.returncode = 134

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        with pytest.raises(ToolchainError) as exc_info:
            program.get_diagnostics()
        assert exc_info.value.returncode == 134

    def test_executable_disappears(self, monkeypatch: pytest.MonkeyPatch, host: Host) -> None:
        def missing(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
            raise FileNotFoundError(command[0])

        monkeypatch.setattr(tsc.shutil, "which", lambda name: "/usr/bin/tsc")
        monkeypatch.setattr(tsc.subprocess, "run", missing)

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        with pytest.raises(ToolchainError):
            program.emit()

    def test_unreadable_source_map(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fake_tsc: FakeTsc,
        host: Host,
    ) -> None:
        def corrupt(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
            completed = fake_tsc(command, **kwargs)
            out_dir = Path(command[command.index("--outDir") + 1])
            for map_file in out_dir.rglob("*.map"):
                map_file.write_text("{not json")
            return completed

        monkeypatch.setattr(tsc.subprocess, "run", corrupt)

        program = TscToolchain().create_program(["/p/src/a.ts"], {}, host)

        with pytest.raises(ToolchainError, match="Cannot read compiler output a.js.map"):
            program.emit()

    def test_node_modules_link_refused(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fake_tsc: FakeTsc,
        store: VirtualFileStore,
        tmp_path: Path,
    ) -> None:
        def refuse(*args: Any, **kwargs: Any) -> None:
            raise OSError("operation not permitted")

        (tmp_path / "node_modules").mkdir()
        root = tmp_path.as_posix()
        store.add(make_file(f"{root}/src/a.ts", "let a;\n", cwd=root, base=f"{root}/src"))
        host = Host(store, LocalFileSystem(), root)
        monkeypatch.setattr(tsc.os, "symlink", refuse)

        program = TscToolchain().create_program([f"{root}/src/a.ts"], {}, host)

        with pytest.raises(ToolchainError, match="Cannot link"):
            program.emit()
        assert fake_tsc.commands == []
