"""Configuration models for tspipe.

This module provides:
- FilterSettings: Narrow the root file list before compilation
- ProjectSettings: Options of a Project (build behaviour + compiler options)
- BuildConfig: The tspipe.yaml file consumed by the CLI

Keys are accepted in snake_case or camelCase (``no_external_resolve`` or
``noExternalResolve``). ``compiler_options`` is forwarded to the toolchain
untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tspipe_core.errors import ConfigurationError

CONFIG_FILE_NAME = "tspipe.yaml"


class _Settings(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FilterSettings(_Settings):
    """Restrict which input files become compiler roots.

    Attributes:
        include: Glob patterns; a file is kept if its normalized path or its
            path relative to the pipeline base matches one of them.
        referenced_from: Keep only files referenced (via reference
            directives) from one of these files.

    Example:
        >>> FilterSettings(include=["src/**/*.ts"])
        FilterSettings(include=['src/**/*.ts'], referenced_from=[])
    """

    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns of files to keep",
    )
    referenced_from: list[str] = Field(
        default_factory=list,
        description="Keep files referenced from these files",
    )

    @property
    def is_empty(self) -> bool:
        return not self.include and not self.referenced_from


class ProjectSettings(_Settings):
    """Options of a Project.

    Attributes:
        compiler_options: Pass-through compiler configuration (target,
            module, declaration, ...).
        no_external_resolve: Never read files outside the input set.
            Faster, but every referenced file must be supplied as input.
        sort_output: Emit JavaScript in reference-directive order, the
            order the compiler uses when bundling into one output file.
        emit_on_error: Emit output even when the compiler reported errors.
            When False, any error diagnostic withholds all output.
        filter: Optional root file filter.

    Example:
        >>> settings = ProjectSettings(compiler_options={"declaration": True}, sort_output=True)
        >>> settings.declaration
        True
    """

    compiler_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Pass-through compiler options",
    )
    no_external_resolve: bool = Field(
        default=False,
        description="Disable file system fallback for files outside the input set",
    )
    sort_output: bool = Field(
        default=False,
        description="Emit output in reference-directive order",
    )
    emit_on_error: bool = Field(
        default=True,
        description="Emit output when the compiler reports errors",
    )
    filter: FilterSettings | None = Field(
        default=None,
        description="Root file filter",
    )

    @property
    def declaration(self) -> bool:
        """Whether declaration files were requested."""
        return bool(self.compiler_options.get("declaration"))


class BuildConfig(_Settings):
    """Build configuration loaded from tspipe.yaml.

    Attributes:
        name: Project name (display only).
        sources: Glob patterns of source files, relative to the config file.
        base: Base directory output paths are computed against.
        out_dir: Directory for JavaScript and source maps.
        declaration_dir: Directory for declarations (defaults to out_dir).
        tsc: Compiler executable.
        project: Project settings.

    Example:
        >>> config = BuildConfig.from_yaml(Path("tspipe.yaml"))
        >>> config.sources
        ['src/**/*.ts']
    """

    name: str = Field(default="tspipe-project", min_length=1)
    sources: list[str] = Field(default_factory=lambda: ["src/**/*.ts"], min_length=1)
    base: str = Field(default="src", description="Base of source paths")
    out_dir: str = Field(default="build", min_length=1)
    declaration_dir: str | None = Field(default=None)
    tsc: str = Field(default="tsc", min_length=1, description="Compiler executable")
    project: ProjectSettings = Field(default_factory=ProjectSettings)

    @field_validator("sources")
    @classmethod
    def sources_must_be_relative(cls, v: list[str]) -> list[str]:
        for pattern in v:
            if Path(pattern).is_absolute():
                msg = f"source pattern must be relative: {pattern}"
                raise ValueError(msg)
        return v

    @classmethod
    def from_yaml(cls, path: Path | str) -> BuildConfig:
        """Load and validate a tspipe.yaml file.

        Args:
            path: Path to the configuration file.

        Returns:
            Validated BuildConfig.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML cannot be parsed or is not a mapping.
            pydantic.ValidationError: If validation fails.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        try:
            raw: Any = yaml.safe_load(path.read_text())
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            raise ConfigurationError(
                "Invalid YAML",
                file_path=str(path),
                line_number=mark.line + 1 if mark is not None else None,
                internal_details=str(exc),
            ) from exc

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError("Configuration must be a mapping", file_path=str(path))

        return cls.model_validate(raw)
