"""Manifest reader: declared dependencies from a Rust Cargo.toml."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import structlog

from cargo_sleek.engines.dependency_check.models import (
    DeclaredDependency,
    DependencyKind,
    Manifest,
)
from cargo_sleek.exceptions import (
    ManifestNotFoundError,
    ManifestParseError,
    ManifestReadError,
)

log = structlog.get_logger(__name__)

MANIFEST_NAME = "Cargo.toml"
METADATA_TABLE = "cargo-sleek"

# Underscore spellings are still accepted by cargo for backwards compatibility.
_DEP_SECTIONS: dict[str, DependencyKind] = {
    "dependencies": DependencyKind.NORMAL,
    "dev-dependencies": DependencyKind.DEV,
    "dev_dependencies": DependencyKind.DEV,
    "build-dependencies": DependencyKind.BUILD,
    "build_dependencies": DependencyKind.BUILD,
}

_ANY_VERSION = "*"
_WORKSPACE_VERSION = "workspace"


def resolve_manifest_path(path: Path | str) -> Path:
    """Return the Cargo.toml for *path*, which may be the file or its directory."""
    path = Path(path)
    if path.is_dir():
        return path / MANIFEST_NAME
    return path


def read_manifest(path: Path | str) -> Manifest:
    """Parse the manifest at *path* into a :class:`Manifest`.

    Dependencies are returned in declaration order: sections in the order they
    appear in the file, entries in the order they appear in their section.

    Raises ``ManifestNotFoundError`` if there is no file, ``ManifestReadError``
    if it cannot be read and ``ManifestParseError`` if the TOML or its
    dependency tables are malformed.
    """
    manifest_path = resolve_manifest_path(path)
    if not manifest_path.is_file():
        raise ManifestNotFoundError(manifest_path)

    try:
        content = manifest_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ManifestParseError(manifest_path, f"not valid UTF-8 ({exc.reason})") from exc
    except OSError as exc:
        raise ManifestReadError(manifest_path, exc.strerror or str(exc)) from exc
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestParseError(manifest_path, str(exc)) from exc

    package = data.get("package")
    workspace = data.get("workspace")
    if package is None and workspace is None:
        raise ManifestParseError(manifest_path, "missing [package] or [workspace] table")
    if package is not None and not isinstance(package, dict):
        raise ManifestParseError(manifest_path, "[package] must be a table")
    if workspace is not None and not isinstance(workspace, dict):
        raise ManifestParseError(manifest_path, "[workspace] must be a table")

    package_name: str | None = None
    if package is not None:
        package_name = package.get("name")
        if package_name is not None and not isinstance(package_name, str):
            raise ManifestParseError(manifest_path, "package.name must be a string")

    workspace_deps = _workspace_dependencies(manifest_path, workspace or {})

    deps: list[DeclaredDependency] = []
    for key, value in data.items():
        if key in _DEP_SECTIONS:
            deps.extend(
                _parse_section(manifest_path, key, value, _DEP_SECTIONS[key], None, workspace_deps)
            )
        elif key == "target":
            deps.extend(_parse_target_sections(manifest_path, value, workspace_deps))

    ignored = _ignored(manifest_path, package or {}) + _ignored(manifest_path, workspace or {})

    log.debug(
        "manifest.read",
        path=str(manifest_path),
        package=package_name,
        dependencies=len(deps),
        ignored=len(ignored),
    )
    return Manifest(
        path=manifest_path,
        package_name=package_name,
        dependencies=tuple(deps),
        ignored=ignored,
        workspace_dependencies=workspace_deps,
    )


def _parse_target_sections(
    path: Path, targets: Any, workspace_deps: dict[str, str]
) -> list[DeclaredDependency]:
    if not isinstance(targets, dict):
        raise ManifestParseError(path, "[target] must be a table")
    deps: list[DeclaredDependency] = []
    for selector, tables in targets.items():
        if not isinstance(tables, dict):
            raise ManifestParseError(path, f"[target.{selector!r}] must be a table")
        for key, value in tables.items():
            if key in _DEP_SECTIONS:
                deps.extend(
                    _parse_section(
                        path, f"target.{selector}.{key}", value, _DEP_SECTIONS[key],
                        selector, workspace_deps,
                    )
                )
    return deps


def _parse_section(
    path: Path,
    label: str,
    table: Any,
    kind: DependencyKind,
    target: str | None,
    workspace_deps: dict[str, str],
) -> list[DeclaredDependency]:
    if not isinstance(table, dict):
        raise ManifestParseError(path, f"[{label}] must be a table")
    return [
        _parse_entry(path, label, name, spec, kind, target, workspace_deps)
        for name, spec in table.items()
    ]


def _parse_entry(
    path: Path,
    label: str,
    name: str,
    spec: Any,
    kind: DependencyKind,
    target: str | None,
    workspace_deps: dict[str, str],
) -> DeclaredDependency:
    """Turn one ``name = spec`` line into a :class:`DeclaredDependency`.

    *spec* is either a version string (``serde = "1.0"``) or an inline table
    (``serde = { version = "1.0", optional = true, package = "serde_derive" }``).
    Path and git dependencies without a version get ``"*"``.
    """
    if isinstance(spec, str):
        return DeclaredDependency(name=name, version_requirement=spec, kind=kind, target=target)
    if not isinstance(spec, dict):
        raise ManifestParseError(
            path, f"dependency {name!r} in [{label}] must be a string or a table"
        )

    version = spec.get("version")
    if version is not None and not isinstance(version, str):
        raise ManifestParseError(path, f"{label}.{name}.version must be a string")
    optional = spec.get("optional", False)
    if not isinstance(optional, bool):
        raise ManifestParseError(path, f"{label}.{name}.optional must be a boolean")
    package = spec.get("package")
    if package is not None and not isinstance(package, str):
        raise ManifestParseError(path, f"{label}.{name}.package must be a string")

    if version is None and spec.get("workspace") is True:
        version = workspace_deps.get(name, _WORKSPACE_VERSION)

    return DeclaredDependency(
        name=name,
        version_requirement=version or _ANY_VERSION,
        kind=kind,
        optional=optional,
        package=package,
        target=target,
    )


def _workspace_dependencies(path: Path, workspace: dict) -> dict[str, str]:
    """Versions from ``[workspace.dependencies]`` for ``workspace = true`` entries."""
    table = workspace.get("dependencies", {})
    if not isinstance(table, dict):
        raise ManifestParseError(path, "[workspace.dependencies] must be a table")
    versions: dict[str, str] = {}
    for name, spec in table.items():
        if isinstance(spec, str):
            versions[name] = spec
        elif isinstance(spec, dict) and isinstance(spec.get("version"), str):
            versions[name] = spec["version"]
    return versions


def _ignored(path: Path, table: dict) -> tuple[str, ...]:
    """Names listed under ``[<package|workspace>.metadata.cargo-sleek] ignored``."""
    metadata = table.get("metadata", {})
    if not isinstance(metadata, dict):
        return ()
    settings = metadata.get(METADATA_TABLE, {})
    if not isinstance(settings, dict):
        raise ManifestParseError(path, f"[metadata.{METADATA_TABLE}] must be a table")
    ignored = settings.get("ignored", [])
    if not isinstance(ignored, list) or not all(isinstance(item, str) for item in ignored):
        raise ManifestParseError(
            path, f"metadata.{METADATA_TABLE}.ignored must be a list of strings"
        )
    return tuple(ignored)
