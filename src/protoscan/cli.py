"""Typer CLI entrypoint for protoscan."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
import yaml

from protoscan.config import AppSettings, load_settings
from protoscan.errors import ProtoscanError
from protoscan.logging_utils import configure_logging
from protoscan.pipeline import BuildRunOptions, plan_build, run_build
from protoscan.resolve import resolve_paths

app = typer.Typer(
    add_completion=False,
    help="protoscan command line interface.",
    no_args_is_help=True,
)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Optional settings YAML path.",
    exists=False,
    file_okay=True,
    dir_okay=False,
    readable=True,
)


def _load_and_optionally_configure_logger(
    config_file: Path | None,
    configure: bool,
    verbose: bool = False,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if configure:
        level = logging.DEBUG if verbose else logging.INFO
        logger = configure_logging(settings.paths.logs_root / "protoscan.log", level=level)
    else:
        logger = logging.getLogger("protoscan")
    return settings, logger


def _fail(logger: logging.Logger, event: str, exc: ProtoscanError) -> typer.Exit:
    logger.exception("%s code=%s", event, exc.code)
    typer.echo(f"error[{exc.code}]: {exc.message}", err=True)
    if exc.suggestion:
        typer.echo(f"hint: {exc.suggestion}", err=True)
    return typer.Exit(code=1)


@app.command("show-config")
def show_config(config_file: Path | None = CONFIG_FILE_OPTION) -> None:
    """Print the effective configuration after env overrides."""

    settings, _ = _load_and_optionally_configure_logger(config_file, configure=False)
    rendered = yaml.safe_dump(settings.as_dict(), sort_keys=False)
    typer.echo(rendered)


@app.command("resolve")
def resolve_cmd(config_file: Path | None = CONFIG_FILE_OPTION) -> None:
    """Print the base protocol description and the protocols directory."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    try:
        paths = resolve_paths(
            settings.scanner.wayland_xml_path,
            settings.scanner.wayland_protocols_path,
            pkg_config=settings.scanner.pkg_config,
            logger=logger,
        )
    except ProtoscanError as exc:
        raise _fail(logger, "resolve.failed", exc) from exc
    typer.echo(f"base_description_path: {paths.base_description_path}")
    typer.echo(f"supplementary_description_dir: {paths.supplementary_description_dir}")


@app.command("plan")
def plan_cmd(config_file: Path | None = CONFIG_FILE_OPTION) -> None:
    """Print every generator command line without running any of them."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=False)
    try:
        plan = plan_build(settings, logger=logger)
    except ProtoscanError as exc:
        raise _fail(logger, "plan.failed", exc) from exc

    typer.echo(" ".join(plan["primary"]["argv"]))
    for artifact in plan["side_artifacts"]:
        typer.echo(" ".join(artifact["argv"]))


@app.command("build")
def build_cmd(
    jobs: int | None = typer.Option(
        None,
        "--jobs",
        "-j",
        min=1,
        help="Run at most N generator processes at once.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Resolve and register everything without running generators.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log generator stderr."),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Generate the binding and per-protocol C sources."""

    settings, logger = _load_and_optionally_configure_logger(config_file, configure=True, verbose=verbose)
    try:
        result = run_build(settings, options=BuildRunOptions(dry_run=dry_run, jobs=jobs), logger=logger)
    except ProtoscanError as exc:
        raise _fail(logger, "build.failed", exc) from exc

    summary = result.summary
    typer.echo(f"run_id: {result.run_id}")
    typer.echo(f"steps_run: {summary['steps_run']}")
    typer.echo(f"binding: {summary['primary']['output']}")
    typer.echo(f"side_artifacts: {len(summary['side_artifacts'])}")
    if result.summary_path is not None:
        typer.echo(f"summary_path: {result.summary_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
