"""Build-metadata reader: the resolved dependency graph from ``cargo metadata``."""

from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path
from typing import Any

import structlog

from cargo_sleek.core.config import DEFAULT_METADATA_TIMEOUT
from cargo_sleek.engines.dependency_check.models import (
    BuildMetadata,
    DependencyKind,
    UsedPackage,
)
from cargo_sleek.exceptions import (
    MetadataParseError,
    MetadataTimeoutError,
    MetadataUnavailableError,
)

log = structlog.get_logger(__name__)

_HOST_PREFIX = "host:"

# `dep_kinds[].kind` is null for normal dependencies.
_KIND_BY_LABEL: dict[str | None, DependencyKind] = {
    None: DependencyKind.NORMAL,
    "normal": DependencyKind.NORMAL,
    "dev": DependencyKind.DEV,
    "build": DependencyKind.BUILD,
}


def metadata_command(
    cargo: str = "cargo",
    *,
    target: str | None = None,
    features: list[str] | tuple[str, ...] = (),
    all_features: bool = False,
    no_default_features: bool = False,
) -> list[str]:
    """Build the ``cargo metadata`` argv.

    The full resolve is requested (no ``--no-deps``) so optional dependencies
    that no enabled feature activates are absent from the graph.
    """
    cmd = [cargo, "metadata", "--format-version", "1"]
    if target:
        cmd += ["--filter-platform", target]
    if features:
        cmd += ["--features", ",".join(features)]
    if all_features:
        cmd.append("--all-features")
    if no_default_features:
        cmd.append("--no-default-features")
    return cmd


def host_target(rustc: str | None = None, timeout: float = 10.0) -> str | None:
    """Return the host triple reported by ``rustc -vV``, or None if unavailable."""
    rustc = rustc or os.environ.get("RUSTC", "rustc")
    try:
        result = subprocess.run(
            [rustc, "-vV"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        log.warning("metadata.host_target_unavailable", rustc=rustc, error=str(exc))
        return None
    if result.returncode != 0:
        log.warning(
            "metadata.host_target_unavailable", rustc=rustc, stderr=result.stderr.strip()
        )
        return None
    for line in result.stdout.splitlines():
        if line.startswith(_HOST_PREFIX):
            return line[len(_HOST_PREFIX):].strip() or None
    return None


def read_metadata(
    project_dir: Path | str,
    *,
    cargo: str = "cargo",
    timeout: float = DEFAULT_METADATA_TIMEOUT,
    target: str | None = None,
    features: list[str] | tuple[str, ...] = (),
    all_features: bool = False,
    no_default_features: bool = False,
    include_dev: bool = False,
    manifest_path: Path | str | None = None,
    package: str | None = None,
) -> BuildMetadata:
    """Run ``cargo metadata`` in *project_dir* and parse its resolved graph.

    Raises ``MetadataUnavailableError`` when cargo cannot be run or exits
    non-zero, ``MetadataTimeoutError`` when it exceeds *timeout* seconds and
    ``MetadataParseError`` when the output cannot be decoded.
    """
    cmd = metadata_command(
        cargo,
        target=target,
        features=features,
        all_features=all_features,
        no_default_features=no_default_features,
    )
    if manifest_path is not None:
        cmd += ["--manifest-path", str(manifest_path)]

    log.info("metadata.invoke", cmd=cmd, cwd=str(project_dir), timeout=timeout)
    try:
        result = subprocess.run(
            cmd,
            cwd=project_dir,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise MetadataTimeoutError(cmd, timeout) from exc
    except OSError as exc:
        raise MetadataUnavailableError(cmd, exc.strerror or str(exc)) from exc

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise MetadataUnavailableError(cmd, stderr, result.returncode)

    try:
        document = json.loads(result.stdout.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataParseError(cmd, str(exc)) from exc

    metadata = parse_metadata(
        document, include_dev=include_dev, package=package, command=cmd, target=target
    )
    log.info(
        "metadata.parsed",
        packages=len(metadata.packages),
        members=sorted(metadata.workspace_members),
        target=target,
    )
    return metadata


def parse_metadata(
    document: Any,
    *,
    include_dev: bool = False,
    package: str | None = None,
    command: list[str] | None = None,
    target: str | None = None,
) -> BuildMetadata:
    """Extract the direct dependencies of the workspace member(s) being checked.

    Only edges from workspace members are followed: the check compares one
    level of declared vs. used, so transitive packages never enter the set.
    When *package* names a member only its edges are followed, otherwise
    every member's. Dev-only edges are dropped unless *include_dev* is set.
    """
    cmd = command or ["cargo", "metadata"]
    if not isinstance(document, dict):
        raise MetadataParseError(cmd, "top-level value is not an object")

    packages = document.get("packages")
    if not isinstance(packages, list):
        raise MetadataParseError(cmd, "missing 'packages' list")
    resolve = document.get("resolve")
    if resolve is None:
        raise MetadataParseError(cmd, "no 'resolve' graph (was --no-deps passed?)")
    if not isinstance(resolve, dict) or not isinstance(resolve.get("nodes"), list):
        raise MetadataParseError(cmd, "missing 'resolve.nodes' list")

    by_id: dict[str, dict] = {}
    for pkg in packages:
        if not isinstance(pkg, dict) or not all(
            isinstance(pkg.get(key), str) for key in ("id", "name", "version")
        ):
            raise MetadataParseError(cmd, f"malformed package entry: {pkg!r}")
        by_id[pkg["id"]] = pkg

    member_ids = document.get("workspace_members") or []
    if not isinstance(member_ids, list):
        raise MetadataParseError(cmd, "'workspace_members' is not a list")
    root = resolve.get("root")
    if not member_ids and root:
        member_ids = [root]
    unknown = [pkg_id for pkg_id in member_ids if pkg_id not in by_id]
    if unknown:
        raise MetadataParseError(cmd, f"unknown workspace member id(s): {unknown}")
    members = set(member_ids)
    if package is not None:
        members = {pkg_id for pkg_id in members if by_id[pkg_id]["name"] == package}

    kinds_by_pkg: dict[str, set[DependencyKind]] = {}
    for node in resolve["nodes"]:
        if not isinstance(node, dict) or node.get("id") not in members:
            continue
        for dep in node.get("deps") or []:
            pkg_id = dep.get("pkg") if isinstance(dep, dict) else None
            if pkg_id not in by_id:
                raise MetadataParseError(cmd, f"resolve node refers to unknown package {pkg_id!r}")
            kinds = _edge_kinds(cmd, dep)
            if not include_dev:
                kinds.discard(DependencyKind.DEV)
            if kinds:
                kinds_by_pkg.setdefault(pkg_id, set()).update(kinds)

    used = tuple(
        UsedPackage(
            name=by_id[pkg_id]["name"],
            resolved_version=by_id[pkg_id]["version"],
            kinds=frozenset(kinds),
        )
        for pkg_id, kinds in kinds_by_pkg.items()
    )
    return BuildMetadata(
        packages=used,
        workspace_members=frozenset(by_id[pkg_id]["name"] for pkg_id in member_ids),
        target=target,
    )


def _edge_kinds(cmd: list[str], dep: dict) -> set[DependencyKind]:
    # cargo < 1.41 has no dep_kinds; every edge is then a normal one.
    dep_kinds = dep.get("dep_kinds")
    if not dep_kinds:
        return {DependencyKind.NORMAL}
    kinds: set[DependencyKind] = set()
    for entry in dep_kinds:
        label = entry.get("kind") if isinstance(entry, dict) else entry
        try:
            kinds.add(_KIND_BY_LABEL[label])
        except (KeyError, TypeError):
            raise MetadataParseError(cmd, f"unknown dependency kind {label!r}") from None
    return kinds
