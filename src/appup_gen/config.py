"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import shlex
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "appup_gen.toml"

DEFAULT_BUILD_COMMAND = ("rebar3", "compile")
DEFAULT_ARTIFACTS_DIR = "_build/default/lib"
DEFAULT_SOURCE_ROOTS = ("apps", "src")


@dataclass(slots=True, frozen=True)
class LayoutConfig:
    """File naming conventions for releases and source trees."""

    binaries_dir: str = "ebin"
    artifact_extension: str = ".beam"
    descriptor_extension: str = ".app"
    record_suffix: str = ".appup.src"
    stub_suffix: str = ".app.src"


@dataclass(slots=True, frozen=True)
class BuildConfig:
    """External build invocation settings."""

    command: tuple[str, ...]
    artifacts_dir: str


@dataclass(slots=True, frozen=True)
class SourceConfig:
    """Source tree search roots and upstream repository."""

    roots: tuple[Path, ...]
    repo_url: str


@dataclass(slots=True, frozen=True)
class AppupConfig:
    """Fully merged tool configuration."""

    repo_root: Path
    data_dir: Path
    layout: LayoutConfig
    build: BuildConfig
    source: SourceConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for reports."""
        return {
            "repo_root": str(self.repo_root),
            "data_dir": str(self.data_dir),
            "layout": {
                "binaries_dir": self.layout.binaries_dir,
                "artifact_extension": self.layout.artifact_extension,
                "descriptor_extension": self.layout.descriptor_extension,
                "record_suffix": self.layout.record_suffix,
                "stub_suffix": self.layout.stub_suffix,
            },
            "build": {
                "command": list(self.build.command),
                "artifacts_dir": self.build.artifacts_dir,
            },
            "source": {
                "roots": [str(root) for root in self.source.roots],
                "repo_url": self.source.repo_url,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    build_command: str | None = None
    artifacts_dir: str | None = None
    source_roots: tuple[str, ...] | None = None
    repo_url: str | None = None


def default_config(repo_root: Path) -> AppupConfig:
    """Build default config for a given repository root."""
    resolved_root = repo_root.resolve()
    return AppupConfig(
        repo_root=resolved_root,
        data_dir=resolved_root / ".appup_gen",
        layout=LayoutConfig(),
        build=BuildConfig(command=DEFAULT_BUILD_COMMAND, artifacts_dir=DEFAULT_ARTIFACTS_DIR),
        source=SourceConfig(
            roots=tuple(resolved_root / root for root in DEFAULT_SOURCE_ROOTS),
            repo_url=str(resolved_root),
        ),
    )


def load_repo_config_file(repo_root: Path) -> dict[str, object]:
    """Load optional appup_gen.toml from repo root."""
    config_path = repo_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _optional_string(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string.")
    return value


def _optional_suffix(value: object, name: str, default: str) -> str:
    suffix = _optional_string(value, name, default)
    if not suffix.startswith("."):
        raise ValueError(f"Config field '{name}' must start with '.'.")
    return suffix


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _command(value: object, name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        parts = tuple(shlex.split(value))
    elif isinstance(value, list) and all(isinstance(item, str) for item in value):
        parts = tuple(value)
    else:
        raise ValueError(f"Config field '{name}' must be a string or a list of strings.")
    if not parts:
        raise ValueError(f"Config field '{name}' must not be empty.")
    return parts


def _resolve_roots(repo_root: Path, roots: tuple[str, ...]) -> tuple[Path, ...]:
    return tuple((repo_root / root).resolve() for root in roots)


def merge_config(
    base: AppupConfig, repo_payload: dict[str, object], overrides: CliOverrides
) -> AppupConfig:
    """Merge defaults, repo config, then CLI/startup overrides."""
    layout_payload = _get_table(repo_payload, "layout")
    build_payload = _get_table(repo_payload, "build")
    source_payload = _get_table(repo_payload, "source")

    layout = LayoutConfig(
        binaries_dir=_optional_string(
            layout_payload.get("binaries_dir"), "layout.binaries_dir", base.layout.binaries_dir
        ),
        artifact_extension=_optional_suffix(
            layout_payload.get("artifact_extension"),
            "layout.artifact_extension",
            base.layout.artifact_extension,
        ),
        descriptor_extension=_optional_suffix(
            layout_payload.get("descriptor_extension"),
            "layout.descriptor_extension",
            base.layout.descriptor_extension,
        ),
        record_suffix=_optional_suffix(
            layout_payload.get("record_suffix"), "layout.record_suffix", base.layout.record_suffix
        ),
        stub_suffix=_optional_suffix(
            layout_payload.get("stub_suffix"), "layout.stub_suffix", base.layout.stub_suffix
        ),
    )
    build = BuildConfig(
        command=_command(build_payload.get("command"), "build.command", base.build.command),
        artifacts_dir=_optional_string(
            build_payload.get("artifacts_dir"), "build.artifacts_dir", base.build.artifacts_dir
        ),
    )

    roots = base.source.roots
    if "roots" in source_payload:
        roots = _resolve_roots(
            base.repo_root, _tuple_of_strings(source_payload["roots"], "source", "roots")
        )
    repo_url = _optional_string(
        source_payload.get("repo_url"), "source.repo_url", base.source.repo_url
    )

    merged = AppupConfig(
        repo_root=base.repo_root,
        data_dir=base.data_dir,
        layout=layout,
        build=build,
        source=SourceConfig(roots=roots, repo_url=repo_url),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: AppupConfig, overrides: CliOverrides) -> AppupConfig:
    """Apply startup overrides at highest precedence."""
    build = BuildConfig(
        command=_command(overrides.build_command, "overrides.build_command", config.build.command),
        artifacts_dir=_optional_string(
            overrides.artifacts_dir, "overrides.artifacts_dir", config.build.artifacts_dir
        ),
    )
    roots = config.source.roots
    if overrides.source_roots:
        roots = _resolve_roots(config.repo_root, overrides.source_roots)
    source = SourceConfig(
        roots=roots,
        repo_url=_optional_string(
            overrides.repo_url, "overrides.repo_url", config.source.repo_url
        ),
    )
    data_dir = overrides.data_dir or config.data_dir
    return AppupConfig(
        repo_root=config.repo_root,
        data_dir=data_dir.resolve(),
        layout=config.layout,
        build=build,
        source=source,
    )


def load_effective_config(repo_root: Path, overrides: CliOverrides | None = None) -> AppupConfig:
    """Load effective config using merge order defaults -> repo config -> overrides."""
    resolved_root = repo_root.resolve()
    base = default_config(resolved_root)
    payload = load_repo_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())
