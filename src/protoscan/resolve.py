"""Locate the base protocol description and the system protocol directory."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from protoscan.errors import ResolutionError
from protoscan.graph.steps import ProcessRunner

LOGGER = logging.getLogger(__name__)

BASE_DESCRIPTION_PACKAGE = "wayland-scanner"
BASE_DESCRIPTION_FILE = "wayland.xml"
SUPPLEMENTARY_PACKAGE = "wayland-protocols"
PKGDATADIR_VARIABLE = "pkgdatadir"


@dataclass(frozen=True, slots=True)
class ResolvedPaths:
    """Locations resolved once per scanner."""

    base_description_path: Path
    supplementary_description_dir: Path


def query_pkg_config_variable(
    package: str,
    variable: str = PKGDATADIR_VARIABLE,
    *,
    pkg_config: str = "pkg-config",
    runner: ProcessRunner = subprocess.run,
    logger: logging.Logger | None = None,
) -> str:
    """Return the whitespace-trimmed value of a pkg-config variable."""

    effective_logger = logger or LOGGER
    argv = [pkg_config, f"--variable={variable}", package]
    try:
        completed = runner(argv, capture_output=True)
    except OSError as exc:
        raise ResolutionError(
            "TOOL_UNAVAILABLE",
            f"Could not launch {pkg_config}: {exc}",
            f"Install {pkg_config} or pass the path explicitly.",
        ) from exc

    if completed.returncode != 0:
        raise ResolutionError(
            "QUERY_FAILED",
            f"{' '.join(argv)} exited with status {completed.returncode}",
            f"Check that {package} is installed and visible to {pkg_config}.",
        )

    try:
        value = _decode(completed.stdout).strip()
    except UnicodeDecodeError as exc:
        raise ResolutionError(
            "QUERY_FAILED",
            f"{' '.join(argv)} printed output that is not valid UTF-8: {exc}",
            "Pass the path explicitly.",
        ) from exc
    effective_logger.debug("resolve.query package=%s variable=%s value=%s", package, variable, value)
    return value


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8")
    return output


def resolve_paths(
    wayland_xml_path: Path | str | None = None,
    wayland_protocols_path: Path | str | None = None,
    *,
    pkg_config: str = "pkg-config",
    runner: ProcessRunner = subprocess.run,
    logger: logging.Logger | None = None,
) -> ResolvedPaths:
    """Resolve both locations, querying pkg-config only for missing overrides.

    The base description is resolved first; a failure there propagates before
    the protocol directory is queried.
    """

    effective_logger = logger or LOGGER

    if wayland_xml_path is not None:
        base_description_path = Path(wayland_xml_path)
    else:
        datadir = query_pkg_config_variable(
            BASE_DESCRIPTION_PACKAGE,
            pkg_config=pkg_config,
            runner=runner,
            logger=effective_logger,
        )
        base_description_path = Path(datadir) / BASE_DESCRIPTION_FILE

    if wayland_protocols_path is not None:
        supplementary_dir = Path(wayland_protocols_path)
    else:
        supplementary_dir = Path(
            query_pkg_config_variable(
                SUPPLEMENTARY_PACKAGE,
                pkg_config=pkg_config,
                runner=runner,
                logger=effective_logger,
            )
        )

    effective_logger.info(
        "resolve.done base_description=%s protocols_dir=%s",
        base_description_path,
        supplementary_dir,
    )
    return ResolvedPaths(
        base_description_path=base_description_path,
        supplementary_description_dir=supplementary_dir,
    )
