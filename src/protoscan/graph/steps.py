"""Deferred process steps and the lazy file handles they produce."""

from __future__ import annotations

import logging
import re
import subprocess
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from protoscan.errors import GenerationError

LOGGER = logging.getLogger(__name__)

ProcessRunner = Callable[..., subprocess.CompletedProcess]

_SLUG_RE = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass(frozen=True, slots=True)
class _OutputFileArg:
    basename: str


class LazyPath:
    """Handle to a file that exists only once its producing step has run."""

    __slots__ = ("step", "basename")

    def __init__(self, step: RunStep, basename: str):
        self.step = step
        self.basename = basename

    @property
    def path(self) -> Path:
        """Location the file will have after materialization."""

        return self.step.output_dir / self.basename

    @property
    def is_materialized(self) -> bool:
        return self.step.is_made

    def get_path(self) -> Path:
        """Return the produced file path, failing if the step has not run."""

        if not self.step.is_made:
            raise RuntimeError(f"{self.basename} requested before step {self.step.name} ran")
        return self.path

    def __repr__(self) -> str:
        return f"LazyPath({self.step.name!r}, {self.basename!r})"


FileArg = LazyPath | Path | str


class RunStep:
    """One external process invocation with an append-only argument list.

    Arguments stay mutable until the step runs; the rendered argv is frozen at
    launch and the process is started at most once.
    """

    def __init__(self, graph: BuildGraph, name: str, index: int):
        self.graph = graph
        self.name = name
        self.index = index
        self._args: list[str | Path | LazyPath | _OutputFileArg] = []
        self._lock = threading.Lock()
        self._made = False
        self._failure: GenerationError | None = None
        self.launch_count = 0
        self.frozen_argv: tuple[str, ...] | None = None

    @property
    def output_dir(self) -> Path:
        return self.graph.cache_root / "steps" / f"{self.index:04d}-{_SLUG_RE.sub('_', self.name)}"

    @property
    def is_made(self) -> bool:
        return self._made

    def add_arg(self, arg: str) -> None:
        self._args.append(str(arg))

    def add_args(self, args: Iterable[str]) -> None:
        for arg in args:
            self.add_arg(arg)

    def add_file_arg(self, file: FileArg) -> None:
        if isinstance(file, LazyPath):
            self._args.append(file)
        else:
            self._args.append(Path(file))

    def add_output_file_arg(self, basename: str) -> LazyPath:
        self._args.append(_OutputFileArg(basename))
        return LazyPath(self, basename)

    @property
    def dependencies(self) -> list[RunStep]:
        deps: list[RunStep] = []
        for arg in self._args:
            if isinstance(arg, LazyPath) and arg.step is not self and arg.step not in deps:
                deps.append(arg.step)
        return deps

    def render_argv(self) -> tuple[str, ...]:
        """Render the current argument list, using planned paths for lazy files."""

        rendered: list[str] = []
        for arg in self._args:
            if isinstance(arg, LazyPath):
                rendered.append(str(arg.path))
            elif isinstance(arg, _OutputFileArg):
                rendered.append(str(self.output_dir / arg.basename))
            else:
                rendered.append(str(arg))
        return tuple(rendered)

    def make(self) -> None:
        """Run the process if it has not run yet; dependencies run first."""

        for dep in self.dependencies:
            dep.make()

        with self._lock:
            if self._made:
                return
            if self._failure is not None:
                raise self._failure

            argv = self.render_argv()
            self.frozen_argv = argv
            logger = self.graph.logger
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._failure = GenerationError(
                    "PROCESS_LAUNCH_FAILED",
                    f"Could not create output directory {self.output_dir} for step {self.name}: {exc}",
                    argv=argv,
                )
                raise self._failure from exc

            logger.info("step.run name=%s argv=%s", self.name, " ".join(argv))

            self.launch_count += 1
            try:
                completed = self.graph.runner(list(argv), capture_output=True, text=True)
            except OSError as exc:
                self._failure = GenerationError(
                    "PROCESS_LAUNCH_FAILED",
                    f"Could not launch {argv[0]} for step {self.name}: {exc}",
                    argv=argv,
                )
                raise self._failure from exc

            if completed.stderr:
                logger.debug("step.stderr name=%s\n%s", self.name, completed.stderr)
            if completed.returncode != 0:
                self._failure = GenerationError(
                    "NON_ZERO_EXIT",
                    f"Step {self.name} exited with status {completed.returncode}",
                    argv=argv,
                    returncode=completed.returncode,
                    stderr=completed.stderr or "",
                )
                raise self._failure

            self._made = True
            logger.debug("step.done name=%s", self.name)

    def __repr__(self) -> str:
        return f"RunStep({self.name!r})"


class BuildGraph:
    """Owner of every step created during graph construction."""

    def __init__(
        self,
        cache_root: Path,
        *,
        runner: ProcessRunner = subprocess.run,
        logger: logging.Logger | None = None,
    ):
        self.cache_root = Path(cache_root)
        self.runner = runner
        self.logger = logger or LOGGER
        self.steps: list[RunStep] = []

    def add_system_command(self, argv: Iterable[str], name: str | None = None) -> RunStep:
        """Create a step whose argv starts with the given command."""

        argv = list(argv)
        step = RunStep(self, name or (argv[0] if argv else "step"), len(self.steps))
        step.add_args(argv)
        self.steps.append(step)
        return step
