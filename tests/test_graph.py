from pathlib import Path

import pytest

from protoscan.errors import GenerationError
from protoscan.graph import BuildGraph, CompileTarget, Module, collect_steps, materialize
from protoscan.scanner import Scanner


def test_lazy_path_is_unavailable_until_its_step_runs(graph: BuildGraph) -> None:
    step = graph.add_system_command(["gen"])
    output = step.add_output_file_arg("out.c")

    with pytest.raises(RuntimeError):
        output.get_path()

    step.make()

    assert output.get_path().read_text(encoding="utf-8").startswith("// generated")


def test_primary_generation_runs_at_most_once(scanner: Scanner, fake_runner) -> None:
    handle = scanner.request_primary_artifact()

    materialize([handle])
    materialize([scanner.request_primary_artifact(), handle])
    scanner.run.make()

    assert scanner.run.launch_count == 1
    assert len(fake_runner.calls_to("zig-wayland-scanner")) == 1
    assert handle.get_path().exists()


def test_argv_is_frozen_at_launch(scanner: Scanner, protocol_files, fake_runner) -> None:
    scanner.generate("wl_seat", 2)
    materialize([scanner.result])
    scanner.generate("wl_output", 4)

    assert "wl_output" not in scanner.run.frozen_argv
    assert fake_runner.calls_to("zig-wayland-scanner")[0] == list(scanner.run.frozen_argv)


def test_unsupported_version_surfaces_non_zero_exit(scanner: Scanner, fake_runner) -> None:
    declared_max = {"wl_seat": 4}

    def reject_newer_versions(argv: list[str]) -> int:
        for idx, arg in enumerate(argv):
            if arg == "-g" and int(argv[idx + 2]) > declared_max.get(argv[idx + 1], 99):
                return 1
        return 0

    fake_runner.fail_when = reject_newer_versions
    scanner.generate("wl_seat", 5)

    with pytest.raises(GenerationError) as exc_info:
        materialize([scanner.result])

    assert exc_info.value.code == "NON_ZERO_EXIT"
    assert exc_info.value.returncode == 1
    assert "generation failed" in exc_info.value.stderr


def test_failed_step_is_not_retried(scanner: Scanner, fake_runner) -> None:
    fake_runner.fail_when = lambda argv: 2

    for _ in range(2):
        with pytest.raises(GenerationError):
            scanner.run.make()

    assert scanner.run.launch_count == 1
    assert not scanner.result.is_materialized


def test_missing_generator_is_launch_failure(scanner: Scanner, fake_runner) -> None:
    fake_runner.missing_tools = {"zig-wayland-scanner"}

    with pytest.raises(GenerationError) as exc_info:
        materialize([scanner.result])

    assert exc_info.value.code == "PROCESS_LAUNCH_FAILED"
    assert exc_info.value.argv[0] == "zig-wayland-scanner"


def test_collect_steps_orders_dependencies_first(graph: BuildGraph) -> None:
    producer = graph.add_system_command(["gen"], name="producer")
    generated = producer.add_output_file_arg("proto.xml")
    consumer = graph.add_system_command(["wayland-scanner", "private-code"], name="consumer")
    consumer.add_file_arg(generated)
    consumer.add_output_file_arg("proto-protocol.c")

    assert collect_steps([consumer]) == [producer, consumer]


def test_dependent_step_receives_produced_path(graph: BuildGraph, fake_runner) -> None:
    producer = graph.add_system_command(["gen"], name="producer")
    generated = producer.add_output_file_arg("proto.xml")
    consumer = graph.add_system_command(["wayland-scanner", "private-code"], name="consumer")
    consumer.add_file_arg(generated)
    consumer.add_output_file_arg("proto-protocol.c")

    materialize([consumer], jobs=4)

    assert [call[0] for call in fake_runner.calls] == ["gen", "wayland-scanner"]
    assert fake_runner.calls[1][2] == str(generated.path)


def test_materializing_targets_runs_every_needed_step_once(scanner: Scanner, protocol_files, fake_runner) -> None:
    module = Module("wayland")
    scanner.attach_generated_binding(module)
    scanner.attach_side_artifacts(module)
    target = CompileTarget("globals", Path("example/globals.zig"))
    target.add_import("wayland", module)
    scanner.attach_side_artifacts(target)
    scanner.add_custom_protocol(protocol_files["custom"])
    scanner.add_system_protocol("stable/xdg-shell/xdg-shell.xml")

    steps = materialize([module, target], jobs=3)

    assert len(steps) == 3
    assert len(fake_runner.calls) == 3
    assert all(source.file.is_materialized for source in target.c_source_files)
    assert all(artifact.step.launch_count == 1 for artifact in scanner.side_artifacts)


def test_steps_get_distinct_output_directories(graph: BuildGraph) -> None:
    first = graph.add_system_command(["gen"], name="same")
    second = graph.add_system_command(["gen"], name="same")

    assert first.output_dir != second.output_dir
    assert first.output_dir.parent == graph.cache_root / "steps"


def test_unusable_cache_root_is_a_generation_error(tmp_path: Path, fake_runner) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory\n", encoding="utf-8")
    graph = BuildGraph(blocker / "cache", runner=fake_runner)
    step = graph.add_system_command(["gen"])
    step.add_output_file_arg("out.c")

    with pytest.raises(GenerationError) as first:
        materialize([step])
    with pytest.raises(GenerationError) as second:
        step.make()

    assert first.value.code == "PROCESS_LAUNCH_FAILED"
    assert second.value is first.value
    assert step.launch_count == 0
    assert fake_runner.calls == []
