"""Shared testing infrastructure for tspipe.

This package provides test doubles shared by the tspipe-core and
tspipe-cli test suites.

Modules:
    fixtures: In-memory compiler toolchain and pipeline file factories

Usage:
    In your conftest.py:
        from testing.fixtures.toolchain import FakeToolchain, make_file
"""

from __future__ import annotations
