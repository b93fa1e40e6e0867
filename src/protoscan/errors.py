"""Error taxonomy for resolution, generation, and configuration failures."""

from __future__ import annotations

from typing import ClassVar, Sequence


class ProtoscanError(Exception):
    """Base error carrying a machine-readable code and an optional suggestion."""

    VALID_CODES: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in self.VALID_CODES:
            raise ValueError(f"Unknown {type(self).__name__} code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class ResolutionError(ProtoscanError):
    """External location lookup failed before the scanner could be created."""

    VALID_CODES = frozenset({"TOOL_UNAVAILABLE", "QUERY_FAILED"})


class GenerationError(ProtoscanError):
    """An external generator process could not be launched or exited non-zero."""

    VALID_CODES = frozenset({"PROCESS_LAUNCH_FAILED", "NON_ZERO_EXIT"})

    def __init__(
        self,
        code: str,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(code, message)
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr


class ConfigurationError(ProtoscanError):
    """Caller error in directives or consumer wiring."""

    VALID_CODES = frozenset(
        {
            "MALFORMED_VERSION_DIRECTIVE",
            "INVALID_VERSION",
            "BINDING_ALREADY_ATTACHED",
        }
    )
