"""Shared pytest fixtures for tspipe-core tests.

This module provides the structlog setup and the in-memory project
fixtures used across the unit tests.
"""

from __future__ import annotations

import sys

import pytest
import structlog

from testing.fixtures.toolchain import FakeToolchain
from tspipe_core.config import ProjectSettings
from tspipe_core.emission import ListSink
from tspipe_core.errors import TspipeError
from tspipe_core.host import MemoryFileSystem
from tspipe_core.project import Project
from tspipe_core.store import VirtualFileStore


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    This fixture ensures structlog outputs to stdout so that capsys
    can capture the output in tests.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def store() -> VirtualFileStore:
    return VirtualFileStore()


@pytest.fixture
def file_system() -> MemoryFileSystem:
    """File system with one external declaration file."""
    return MemoryFileSystem({"/p/lib/external.d.ts": "declare const external: number;\n"})


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def project(toolchain: FakeToolchain, file_system: MemoryFileSystem) -> Project:
    """Project with default settings over the in-memory toolchain."""
    return Project(ProjectSettings(), toolchain=toolchain, file_system=file_system)


@pytest.fixture
def js_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def declaration_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def errors() -> list[TspipeError]:
    """Collects what the build hands to its error callback."""
    return []
