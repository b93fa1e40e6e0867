"""Compilation units that consume generated sources."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from protoscan.graph.steps import LazyPath, RunStep

DEFAULT_C_FLAGS: tuple[str, ...] = ("-std=c99", "-O2")


@dataclass(frozen=True, slots=True)
class CSourceFile:
    """A C source attached to a compilation unit, with its compile flags."""

    file: LazyPath | Path
    flags: tuple[str, ...] = DEFAULT_C_FLAGS

    @property
    def path(self) -> Path:
        return self.file.path if isinstance(self.file, LazyPath) else self.file


@runtime_checkable
class CSourceConsumer(Protocol):
    """Anything generated C sources can be attached to."""

    name: str

    def add_c_source_file(self, source: CSourceFile) -> None:
        ...


class SourceUnit:
    """Shared bookkeeping for modules and compile targets."""

    def __init__(self, name: str, root_source_file: LazyPath | Path | None = None):
        self.name = name
        self.root_source_file = root_source_file
        self.c_source_files: list[CSourceFile] = []
        self.imports: dict[str, Module] = {}

    def add_c_source_file(self, source: CSourceFile) -> None:
        self.c_source_files.append(source)

    def add_import(self, import_name: str, module: Module) -> None:
        self.imports[import_name] = module

    @property
    def dependencies(self) -> list[RunStep]:
        """Steps that must run before this unit can be compiled."""

        deps: list[RunStep] = []
        candidates: list[LazyPath | Path | None] = [self.root_source_file]
        candidates.extend(source.file for source in self.c_source_files)
        for candidate in candidates:
            if isinstance(candidate, LazyPath) and candidate.step not in deps:
                deps.append(candidate.step)
        for module in self.imports.values():
            for step in module.dependencies:
                if step not in deps:
                    deps.append(step)
        return deps

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Module(SourceUnit):
    """Importable module, e.g. the one owning the generated binding."""


class CompileTarget(SourceUnit):
    """Downstream executable or library compilation."""
