"""Reconciliation engine: diff declared dependencies against the resolved graph.

Pure functions only: no I/O, no mutation of the inputs. Every declared
dependency lands in exactly one of ``used``, ``unused`` or ``ambiguous``, in
manifest declaration order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from cargo_sleek.engines.dependency_check.models import (
    DeclaredDependency,
    DependencyKind,
    ReconciliationReport,
    UsedPackage,
)

# Crates that only run inside build.rs and so may never show up as a compiled
# artifact of the package. Extend through CARGO_SLEEK_BUILD_TOOLS or --allow.
DEFAULT_BUILD_TOOLS: frozenset[str] = frozenset(
    {
        "autocfg",
        "bindgen",
        "built",
        "cbindgen",
        "cc",
        "cmake",
        "embed-resource",
        "pkg-config",
        "prost-build",
        "rustc_version",
        "tonic-build",
        "vcpkg",
        "vergen",
        "version_check",
        "winres",
    }
)

NOTE_WORKSPACE = "workspace member"
NOTE_IGNORED = "ignored by configuration"
NOTE_BUILD_TOOL = "build tool"


def normalize_name(name: str) -> str:
    """Canonical crate name: lower case, ``-`` folded into ``_``."""
    return name.strip().lower().replace("-", "_")


@dataclass(frozen=True)
class ExclusionPolicy:
    """Names that count as used without appearing in the resolved graph."""

    build_tools: frozenset[str] = DEFAULT_BUILD_TOOLS
    workspace_members: frozenset[str] = frozenset()
    ignored: frozenset[str] = frozenset()

    def is_build_tool(self, name: str) -> bool:
        return _contains(self.build_tools, name)

    def is_workspace_member(self, name: str) -> bool:
        return _contains(self.workspace_members, name)

    def is_ignored(self, name: str) -> bool:
        return _contains(self.ignored, name)


def reconcile(
    declared: Iterable[DeclaredDependency],
    used: Iterable[UsedPackage],
    policy: ExclusionPolicy | None = None,
) -> ReconciliationReport:
    """Classify every declared dependency against the used package set."""
    policy = policy or ExclusionPolicy()
    used_names = {normalize_name(pkg.name) for pkg in used}

    buckets: dict[str, list[DeclaredDependency]] = {"used": [], "unused": [], "ambiguous": []}
    notes: dict[DeclaredDependency, str] = {}
    for dep in declared:
        bucket, note = _classify(dep, used_names, policy)
        buckets[bucket].append(dep)
        if note:
            notes[dep] = note

    return ReconciliationReport(
        used=tuple(buckets["used"]),
        unused=tuple(buckets["unused"]),
        ambiguous=tuple(buckets["ambiguous"]),
        notes=notes,
    )


def _classify(
    dep: DeclaredDependency, used_names: set[str], policy: ExclusionPolicy
) -> tuple[str, str | None]:
    if normalize_name(dep.name) in used_names:
        return "used", None
    if policy.is_workspace_member(dep.package or dep.name):
        return "used", NOTE_WORKSPACE
    if policy.is_ignored(dep.name):
        return "used", NOTE_IGNORED
    if dep.kind is DependencyKind.BUILD and policy.is_build_tool(dep.package or dep.name):
        return "used", NOTE_BUILD_TOOL
    if dep.package and normalize_name(dep.package) in used_names:
        return "ambiguous", f"renamed from package {dep.package!r}; verify manually"
    if dep.target:
        return "ambiguous", f"only declared for {dep.target}"
    return "unused", None


def _contains(names: frozenset[str], name: str) -> bool:
    wanted = normalize_name(name)
    return any(normalize_name(candidate) == wanted for candidate in names)
