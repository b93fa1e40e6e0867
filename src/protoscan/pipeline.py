"""Assemble the scanner build graph from settings and materialize it."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from protoscan.config import AppSettings
from protoscan.directives import parse_directives
from protoscan.graph.executor import materialize
from protoscan.graph.steps import BuildGraph, LazyPath, ProcessRunner
from protoscan.graph.targets import CompileTarget, Module, SourceUnit
from protoscan.scanner import Scanner
from protoscan.utils.paths import write_json_atomically
from protoscan.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)

BUILD_SUMMARY_FILE = "build_summary.json"


@dataclass(frozen=True, slots=True)
class BuildRunOptions:
    """Runtime options for a build run."""

    dry_run: bool = False
    jobs: int | None = None


@dataclass(frozen=True, slots=True)
class AssembledBuild:
    """Everything registered during graph construction."""

    graph: BuildGraph
    scanner: Scanner
    module: Module
    targets: list[CompileTarget]


@dataclass(frozen=True, slots=True)
class BuildRunResult:
    """Return object for build run outcomes."""

    run_id: str
    summary: dict[str, Any]
    summary_path: Path | None


def assemble_build(
    settings: AppSettings,
    *,
    runner: ProcessRunner = subprocess.run,
    logger: logging.Logger | None = None,
) -> AssembledBuild:
    """Create the scanner and register protocols, directives, and consumers."""

    effective_logger = logger or LOGGER
    directives = parse_directives(settings.protocols.generate_interfaces)

    graph = BuildGraph(settings.paths.cache_root, runner=runner, logger=effective_logger)
    scanner = Scanner.create(graph, settings.scanner.to_options(), runner=runner, logger=effective_logger)

    module = Module(settings.build.module_name)
    scanner.attach_generated_binding(module)
    scanner.attach_side_artifacts(module)

    for protocol in settings.protocols.custom_protocols:
        scanner.add_custom_protocol(protocol)
    for protocol in settings.protocols.system_protocols:
        scanner.add_system_protocol(protocol)
    for directive in directives:
        scanner.generate(directive.name, directive.version)

    targets: list[CompileTarget] = []
    for target_config in settings.targets:
        target = CompileTarget(target_config.name, target_config.root_source_file)
        target.add_import(module.name, module)
        if target_config.attach_side_artifacts:
            scanner.attach_side_artifacts(target)
        targets.append(target)

    effective_logger.info(
        "assemble.done inputs=%s directives=%s side_artifacts=%s consumers=%s targets=%s",
        len(scanner.inputs),
        len(scanner.directives),
        len(scanner.side_artifacts),
        len(scanner.consumers),
        len(targets),
    )
    return AssembledBuild(graph=graph, scanner=scanner, module=module, targets=targets)


def _describe_unit(unit: SourceUnit) -> dict[str, Any]:
    root = unit.root_source_file
    if isinstance(root, LazyPath):
        root = root.path
    return {
        "name": unit.name,
        "root_source_file": str(root) if root is not None else None,
        "imports": sorted(unit.imports),
        "c_sources": [str(source.path) for source in unit.c_source_files],
        "c_flags": sorted({flag for source in unit.c_source_files for flag in source.flags}),
    }


def describe_build(assembled: AssembledBuild) -> dict[str, Any]:
    """JSON-ready description of the assembled graph."""

    scanner = assembled.scanner
    primary_step = scanner.run
    return {
        "resolved": {
            "base_description_path": str(scanner.paths.base_description_path),
            "supplementary_description_dir": str(scanner.paths.supplementary_description_dir),
        },
        "primary": {
            "argv": list(primary_step.frozen_argv or primary_step.render_argv()),
            "output": str(scanner.result.path),
            "launched": primary_step.launch_count,
            "directives": [{"name": name, "version": version} for name, version in scanner.directives],
        },
        "side_artifacts": [
            {
                "protocol": str(artifact.protocol_path),
                "output": str(artifact.file.path),
                "argv": list(artifact.step.frozen_argv or artifact.step.render_argv()),
                "attached_to": [consumer.name for consumer in artifact.attached_to],
            }
            for artifact in scanner.side_artifacts
        ],
        "module": _describe_unit(assembled.module),
        "targets": [_describe_unit(target) for target in assembled.targets],
    }


def plan_build(
    settings: AppSettings,
    *,
    runner: ProcessRunner = subprocess.run,
    logger: logging.Logger | None = None,
) -> dict[str, Any]:
    """Describe what a build would run, without running generators."""

    assembled = assemble_build(settings, runner=runner, logger=logger)
    return describe_build(assembled)


def run_build(
    settings: AppSettings,
    *,
    options: BuildRunOptions | None = None,
    runner: ProcessRunner = subprocess.run,
    logger: logging.Logger | None = None,
) -> BuildRunResult:
    """Assemble, materialize the binding module and targets, write the summary."""

    effective_logger = logger or LOGGER
    run_options = options or BuildRunOptions()
    jobs = run_options.jobs or settings.build.jobs

    run_id = f"build-run-{uuid4().hex[:12]}"
    started_ts = now_utc()
    started_mono = time.monotonic()
    effective_logger.info("build_run.start run_id=%s dry_run=%s jobs=%s", run_id, run_options.dry_run, jobs)

    assembled = assemble_build(settings, runner=runner, logger=effective_logger)

    steps_run = 0
    if not run_options.dry_run:
        roots: list[SourceUnit] = [assembled.module, *assembled.targets]
        steps_run = len(materialize(roots, jobs=jobs, logger=effective_logger))

    summary: dict[str, Any] = {
        "run_id": run_id,
        "started_ts": started_ts.isoformat(),
        "finished_ts": now_utc().isoformat(),
        "duration_sec": round(time.monotonic() - started_mono, 3),
        "dry_run": run_options.dry_run,
        "steps_total": len(assembled.graph.steps),
        "steps_run": steps_run,
        **describe_build(assembled),
    }

    summary_path: Path | None = None
    if not run_options.dry_run:
        summary_path = write_json_atomically(summary, settings.paths.artifacts_root / BUILD_SUMMARY_FILE)

    effective_logger.info(
        "build_run.done run_id=%s steps_run=%s summary_path=%s",
        run_id,
        steps_run,
        summary_path,
    )
    return BuildRunResult(run_id=run_id, summary=summary, summary_path=summary_path)
