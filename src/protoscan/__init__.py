"""Protocol binding generation orchestrator."""

from protoscan.errors import ConfigurationError, GenerationError, ProtoscanError, ResolutionError
from protoscan.resolve import ResolvedPaths, resolve_paths
from protoscan.scanner import Scanner, ScannerOptions, SideArtifact, side_artifact_name

__all__ = [
    "ProtoscanError",
    "ResolutionError",
    "GenerationError",
    "ConfigurationError",
    "ResolvedPaths",
    "resolve_paths",
    "Scanner",
    "ScannerOptions",
    "SideArtifact",
    "side_artifact_name",
]
