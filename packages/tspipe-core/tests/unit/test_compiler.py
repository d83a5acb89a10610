"""Unit tests for compiler invocation."""

from __future__ import annotations

import pytest

from testing.fixtures.toolchain import FakeToolchain, make_file
from tspipe_core.compiler import BuildContext, invoke, reference_graph
from tspipe_core.config import ProjectSettings
from tspipe_core.errors import ResolutionError
from tspipe_core.host import Host, MemoryFileSystem
from tspipe_core.models import OutputKind
from tspipe_core.store import VirtualFileStore


@pytest.fixture
def context(store: VirtualFileStore) -> BuildContext:
    text = '/// <reference path="b.ts" />\n// @error 2304 Cannot find name.\n'
    store.add(make_file("/p/src/a.ts", text))
    store.add(make_file("/p/src/b.ts", "let b;\n"))
    return BuildContext(
        store=store,
        settings=ProjectSettings(sort_output=True, compiler_options={"target": "ES5"}),
        host=Host(store, MemoryFileSystem(), "/p"),
    )


class TestInvoke:
    """Tests for invoke()."""

    def test_collects_diagnostics_and_artifacts(self, context: BuildContext) -> None:
        invocation = invoke(context, FakeToolchain())

        assert [d.code for d in invocation.diagnostics] == [2304]
        assert invocation.errors == 1
        assert [a.kind for a in invocation.artifacts].count(OutputKind.JAVASCRIPT) == 2

    def test_sets_program_and_roots(self, context: BuildContext) -> None:
        toolchain = FakeToolchain()

        invoke(context, toolchain)

        assert context.program is toolchain.program
        assert context.root_paths == ["/p/src/a.ts", "/p/src/b.ts"]
        assert toolchain.options == {"target": "ES5"}

    def test_graph_only_when_sorting(self, store: VirtualFileStore) -> None:
        store.add(make_file("/p/src/a.ts", "let a;\n"))
        context = BuildContext(
            store=store,
            settings=ProjectSettings(),
            host=Host(store, MemoryFileSystem()),
        )

        assert invoke(context, FakeToolchain()).graph is None

    def test_reference_graph(self, context: BuildContext) -> None:
        invocation = invoke(context, FakeToolchain())

        assert invocation.graph is not None
        assert invocation.graph.references("/p/src/a.ts") == ["/p/src/b.ts"]
        assert invocation.graph.references("/p/src/b.ts") == []

    def test_reference_graph_from_program(self, context: BuildContext) -> None:
        toolchain = FakeToolchain()
        invocation = invoke(context, toolchain)
        assert toolchain.program is not None

        graph = reference_graph(toolchain.program, invocation.artifacts)

        assert list(graph) == ["/p/src/a.ts"]

    def test_resolution_error_propagates(self, store: VirtualFileStore) -> None:
        store.add(make_file("/p/src/a.ts", '/// <reference path="../lib/x.ts" />\n'))
        context = BuildContext(
            store=store,
            settings=ProjectSettings(),
            host=Host(store, MemoryFileSystem(), external_resolve=False),
        )

        with pytest.raises(ResolutionError):
            invoke(context, FakeToolchain())
