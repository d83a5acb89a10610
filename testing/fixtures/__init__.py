"""Shared test fixtures for tspipe packages.

Exports:
    Toolchain fixtures:
        FakeToolchain: Deterministic in-memory replacement for ``tsc``
        FakeProgram: Program created by FakeToolchain
        make_file: Factory for PipelineFile objects
        identity_map: Line-for-line source map for a file
        compile_javascript: JavaScript FakeProgram emits for a source

Usage:
    ```python
    from testing.fixtures import FakeToolchain, make_file

    toolchain = FakeToolchain()
    project.add_file(make_file("/p/src/a.ts", "let a = 1;"))
    ```
"""

from __future__ import annotations

from testing.fixtures.toolchain import (
    FakeProgram,
    FakeToolchain,
    compile_javascript,
    identity_map,
    make_file,
)

__all__ = [
    "FakeProgram",
    "FakeToolchain",
    "compile_javascript",
    "identity_map",
    "make_file",
]
