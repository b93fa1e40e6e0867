import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from protoscan.graph import BuildGraph
from protoscan.resolve import ResolvedPaths
from protoscan.scanner import Scanner, ScannerOptions


class FakeRunner:
    """Stands in for subprocess.run: records argv and writes generator outputs."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.pkg_config_values: dict[str, str] = {}
        self.fail_when: Callable[[list[str]], int] | None = None
        self.missing_tools: set[str] = set()

    def __call__(self, argv: list[str], capture_output: bool = False, text: bool = False, **_: object):
        argv = list(argv)
        self.calls.append(argv)
        if argv[0] in self.missing_tools:
            raise FileNotFoundError(2, "No such file or directory", argv[0])

        if argv[0] == "pkg-config":
            package = argv[-1]
            if package not in self.pkg_config_values:
                return self._completed(argv, 1, "", f"Package {package} was not found\n", text)
            return self._completed(argv, 0, self.pkg_config_values[package], "", text)

        returncode = self.fail_when(argv) if self.fail_when is not None else 0
        if returncode != 0:
            return self._completed(argv, returncode, "", "error: generation failed\n", text)

        output = Path(argv[argv.index("-o") + 1]) if "-o" in argv else Path(argv[-1])
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(f"// generated by {argv[0]}\n", encoding="utf-8")
        return self._completed(argv, 0, "", "", text)

    @staticmethod
    def _completed(argv: list[str], returncode: int, stdout: str, stderr: str, text: bool):
        if not text:
            return subprocess.CompletedProcess(argv, returncode, stdout.encode(), stderr.encode())
        return subprocess.CompletedProcess(argv, returncode, stdout, stderr)

    def calls_to(self, tool: str) -> list[list[str]]:
        return [call for call in self.calls if call[0] == tool]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def protocol_files(tmp_path: Path) -> dict[str, Path]:
    base = tmp_path / "share" / "wayland" / "wayland.xml"
    protocols_dir = tmp_path / "share" / "wayland-protocols"
    xdg_shell = protocols_dir / "stable" / "xdg-shell" / "xdg-shell.xml"
    custom = tmp_path / "protocols" / "river-status-unstable-v1.xml"
    for path in (base, xdg_shell, custom):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("<protocol />\n", encoding="utf-8")
    return {
        "base": base,
        "protocols_dir": protocols_dir,
        "xdg_shell": xdg_shell,
        "custom": custom,
    }


@pytest.fixture
def graph(tmp_path: Path, fake_runner: FakeRunner) -> BuildGraph:
    return BuildGraph(tmp_path / "cache", runner=fake_runner)


@pytest.fixture
def scanner(graph: BuildGraph, protocol_files: dict[str, Path]) -> Scanner:
    paths = ResolvedPaths(
        base_description_path=protocol_files["base"],
        supplementary_description_dir=protocol_files["protocols_dir"],
    )
    return Scanner(graph, paths, ScannerOptions())


@pytest.fixture
def write_settings(tmp_path: Path, protocol_files: dict[str, Path]) -> Callable[..., Path]:
    def _write_settings(extra_yaml: str = "") -> Path:
        settings_file = tmp_path / "project" / "configs" / "settings.yaml"
        settings_file.parent.mkdir(parents=True, exist_ok=True)
        settings_file.write_text(
            "scanner:\n"
            f"  wayland_xml_path: {protocol_files['base']}\n"
            f"  wayland_protocols_path: {protocol_files['protocols_dir']}\n"
            + extra_yaml,
            encoding="utf-8",
        )
        return settings_file

    return _write_settings


@pytest.fixture(autouse=True)
def restore_root_logging():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(level)
