"""Protocol scanner: primary binding generation plus per-protocol C sources.

A `Scanner` accumulates one primary generator invocation (every protocol
input and every interface directive) and, for each protocol, an independent
`wayland-scanner private-code` invocation. The per-protocol C sources are
attached to every registered consumer no matter whether the consumer or the
protocol was registered first: new consumers catch up on existing sources,
and new sources are pushed to existing consumers.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from protoscan.directives import validate_version
from protoscan.errors import ConfigurationError
from protoscan.graph.steps import BuildGraph, LazyPath, ProcessRunner, RunStep
from protoscan.graph.targets import DEFAULT_C_FLAGS, CSourceConsumer, CSourceFile, Module
from protoscan.resolve import ResolvedPaths, resolve_paths

LOGGER = logging.getLogger(__name__)

PRIVATE_CODE_VERB = "private-code"
SIDE_ARTIFACT_SUFFIX = "-protocol"


@dataclass(frozen=True, slots=True)
class ScannerOptions:
    """Construction options; `None` paths are looked up with pkg-config."""

    wayland_xml_path: Path | None = None
    wayland_protocols_path: Path | None = None
    pkg_config: str = "pkg-config"
    scanner_command: tuple[str, ...] = ("zig-wayland-scanner",)
    wayland_scanner: str = "wayland-scanner"
    binding_file_name: str = "wayland.zig"
    side_artifact_extension: str = "c"
    c_flags: tuple[str, ...] = DEFAULT_C_FLAGS


def side_artifact_name(protocol_path: Path | str, extension: str = "c") -> str:
    """`.../xdg-shell.xml` -> `xdg-shell-protocol.c`."""

    return f"{Path(protocol_path).stem}{SIDE_ARTIFACT_SUFFIX}.{extension}"


@dataclass(slots=True)
class SideArtifact:
    """Generated C source for one protocol registration."""

    protocol_path: Path
    step: RunStep
    file: LazyPath
    attached_to: list[CSourceConsumer] = field(default_factory=list)


class Scanner:
    """Accumulates generation requests and keeps consumers in sync.

    Use `Scanner.create`; it resolves external locations before anything is
    constructed, so a resolution failure leaves no scanner behind.

    Registration is not thread-safe and is expected to happen in a single
    graph construction phase. Registering the same consumer twice is a
    precondition violation and results in duplicate attachments.
    """

    def __init__(
        self,
        graph: BuildGraph,
        paths: ResolvedPaths,
        options: ScannerOptions | None = None,
        *,
        logger: logging.Logger | None = None,
    ):
        self.graph = graph
        self.paths = paths
        self.options = options or ScannerOptions()
        self.logger = logger or LOGGER

        self.run = graph.add_system_command(self.options.scanner_command, name="scan-protocols")
        self.run.add_arg("-o")
        self.result = self.run.add_output_file_arg(self.options.binding_file_name)
        self.run.add_arg("-i")
        self.run.add_file_arg(paths.base_description_path)

        self.inputs: list[Path] = [paths.base_description_path]
        self.directives: list[tuple[str, int]] = []
        self.side_artifacts: list[SideArtifact] = []
        self.consumers: list[CSourceConsumer] = []
        self.binding_owner: Module | None = None

    @classmethod
    def create(
        cls,
        graph: BuildGraph,
        options: ScannerOptions | None = None,
        *,
        runner: ProcessRunner = subprocess.run,
        logger: logging.Logger | None = None,
    ) -> Scanner:
        """Resolve locations, then build the scanner."""

        effective_options = options or ScannerOptions()
        paths = resolve_paths(
            effective_options.wayland_xml_path,
            effective_options.wayland_protocols_path,
            pkg_config=effective_options.pkg_config,
            runner=runner,
            logger=logger,
        )
        return cls(graph, paths, effective_options, logger=logger)

    def add_system_protocol(self, relative_path: Path | str) -> SideArtifact:
        """Scan a protocol relative to the protocols directory,
        e.g. `stable/xdg-shell/xdg-shell.xml`."""

        full_path = self.paths.supplementary_description_dir / relative_path
        return self._add_input(full_path)

    def add_custom_protocol(self, path: Path | str) -> SideArtifact:
        """Scan the protocol at the given path."""

        return self._add_input(Path(path))

    def _add_input(self, path: Path) -> SideArtifact:
        self.run.add_arg("-i")
        self.run.add_file_arg(path)
        self.inputs.append(path)
        self.logger.debug("scanner.add_input path=%s", path)
        return self._generate_side_artifact(path)

    def generate(self, global_interface: str, version: int) -> None:
        """Generate code for a global interface at a version, and everything
        creatable from it at that version.

        The generator fails if the protocol declares a lower version.
        wl_display, wl_registry, wl_callback and wl_buffer are always
        generated.
        """

        validate_version(version, global_interface)
        self.run.add_args(["-g", global_interface, str(version)])
        self.directives.append((global_interface, version))
        self.logger.debug("scanner.generate interface=%s version=%s", global_interface, version)

    def request_primary_artifact(self) -> LazyPath:
        return self.result

    def attach_generated_binding(self, module: Module) -> None:
        """Make the generated binding the root source of its owning module."""

        if self.binding_owner is not None and self.binding_owner is not module:
            raise ConfigurationError(
                "BINDING_ALREADY_ATTACHED",
                f"Generated binding already belongs to module {self.binding_owner.name}",
                f"Import {self.binding_owner.name} from {module.name} instead.",
            )
        module.root_source_file = self.result
        self.binding_owner = module

    def attach_side_artifacts(self, consumer: CSourceConsumer) -> None:
        """Attach every generated C source, present and future, to the consumer."""

        for artifact in self.side_artifacts:
            self._attach(artifact, consumer)
        self.consumers.append(consumer)
        self.logger.debug(
            "scanner.consumer_registered name=%s caught_up=%s",
            consumer.name,
            len(self.side_artifacts),
        )

    def _generate_side_artifact(self, protocol_path: Path) -> SideArtifact:
        step = self.graph.add_system_command(
            [self.options.wayland_scanner, PRIVATE_CODE_VERB],
            name=f"private-code-{protocol_path.stem}",
        )
        step.add_file_arg(protocol_path)
        file = step.add_output_file_arg(side_artifact_name(protocol_path, self.options.side_artifact_extension))

        artifact = SideArtifact(protocol_path=protocol_path, step=step, file=file)
        self.side_artifacts.append(artifact)
        for consumer in self.consumers:
            self._attach(artifact, consumer)
        return artifact

    def _attach(self, artifact: SideArtifact, consumer: CSourceConsumer) -> None:
        consumer.add_c_source_file(CSourceFile(file=artifact.file, flags=self.options.c_flags))
        artifact.attached_to.append(consumer)

    def attachments(self) -> list[tuple[CSourceConsumer, list[Path]]]:
        """Each registered consumer with the protocols whose C sources it received, in order."""

        return [
            (
                consumer,
                [
                    artifact.protocol_path
                    for artifact in self.side_artifacts
                    for attached in artifact.attached_to
                    if attached is consumer
                ],
            )
            for consumer in self.consumers
        ]

    def plan(self) -> list[tuple[str, Sequence[str]]]:
        """Rendered command lines as (step name, argv), without running anything."""

        planned: list[tuple[str, Sequence[str]]] = [(self.run.name, self.run.render_argv())]
        for artifact in self.side_artifacts:
            planned.append((artifact.step.name, artifact.step.render_argv()))
        return planned
