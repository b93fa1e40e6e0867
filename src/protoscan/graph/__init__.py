"""Minimal build graph: deferred process steps, consumers, and an executor."""

from protoscan.graph.executor import collect_steps, materialize
from protoscan.graph.steps import BuildGraph, LazyPath, RunStep
from protoscan.graph.targets import (
    DEFAULT_C_FLAGS,
    CompileTarget,
    CSourceConsumer,
    CSourceFile,
    Module,
    SourceUnit,
)

__all__ = [
    "BuildGraph",
    "RunStep",
    "LazyPath",
    "DEFAULT_C_FLAGS",
    "CSourceFile",
    "CSourceConsumer",
    "SourceUnit",
    "Module",
    "CompileTarget",
    "collect_steps",
    "materialize",
]
