"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from protoscan.graph.targets import DEFAULT_C_FLAGS
from protoscan.scanner import ScannerOptions

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "PROTOSCAN_SETTINGS_FILE"


class ScannerConfig(BaseModel):
    """External tools and location overrides for the scanner."""

    wayland_xml_path: Path | None = None
    wayland_protocols_path: Path | None = None
    pkg_config: str = "pkg-config"
    scanner_command: list[str] = Field(default_factory=lambda: ["zig-wayland-scanner"], min_length=1)
    wayland_scanner: str = "wayland-scanner"
    binding_file_name: str = "wayland.zig"
    c_flags: list[str] = Field(default_factory=lambda: list(DEFAULT_C_FLAGS))

    def to_options(self) -> ScannerOptions:
        return ScannerOptions(
            wayland_xml_path=self.wayland_xml_path,
            wayland_protocols_path=self.wayland_protocols_path,
            pkg_config=self.pkg_config,
            scanner_command=tuple(self.scanner_command),
            wayland_scanner=self.wayland_scanner,
            binding_file_name=self.binding_file_name,
            c_flags=tuple(self.c_flags),
        )


class ProtocolsConfig(BaseModel):
    """Protocol inputs and interface directives."""

    custom_protocols: list[Path] = Field(default_factory=list)
    system_protocols: list[str] = Field(default_factory=list)
    generate_interfaces: list[str] = Field(default_factory=list)


class TargetConfig(BaseModel):
    """A downstream compile target receiving the generated sources."""

    name: str
    root_source_file: Path | None = None
    # Give the target its own copy of every generated C source instead of
    # relying on the binding module's copy.
    attach_side_artifacts: bool = False


class PathsConfig(BaseModel):
    """Filesystem paths used by the build."""

    cache_root: Path = Path("./.protoscan-cache")
    artifacts_root: Path = Path("./artifacts")
    logs_root: Path = Path("./logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class BuildConfig(BaseModel):
    """Executor settings."""

    jobs: int = Field(default=1, ge=1)
    module_name: str = "wayland"


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    protocols: ProtocolsConfig = Field(default_factory=ProtocolsConfig)
    targets: list[TargetConfig] = Field(default_factory=list)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)

    model_config = SettingsConfigDict(
        env_prefix="PROTOSCAN_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides.

    Relative paths, including custom protocol and target source paths, are
    resolved against the project root (the parent of the settings file's
    directory).
    """

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    resolved_protocols = settings.protocols.model_copy(
        update={
            "custom_protocols": [
                path if path.is_absolute() else (project_root / path).resolve()
                for path in settings.protocols.custom_protocols
            ]
        }
    )
    resolved_targets = [
        target.model_copy(update={"root_source_file": (project_root / target.root_source_file).resolve()})
        if target.root_source_file is not None and not target.root_source_file.is_absolute()
        else target
        for target in settings.targets
    ]
    return settings.model_copy(
        update={"paths": resolved_paths, "protocols": resolved_protocols, "targets": resolved_targets}
    )
