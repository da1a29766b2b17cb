"""Data models for the dependency check engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class DependencyKind(str, enum.Enum):
    """Manifest section a dependency is declared in."""

    NORMAL = "normal"
    DEV = "dev"
    BUILD = "build"


@dataclass(frozen=True)
class DeclaredDependency:
    """A single dependency declared in Cargo.toml."""

    name: str  # key as written in the manifest (the extern crate name when renamed)
    version_requirement: str
    kind: DependencyKind = DependencyKind.NORMAL
    optional: bool = False
    package: str | None = None  # rename target: `foo = { package = "bar" }`
    target: str | None = None  # platform selector from [target.<cfg>.dependencies]


@dataclass(frozen=True)
class Manifest:
    """Everything the check needs from one Cargo.toml."""

    path: Path
    package_name: str | None
    dependencies: tuple[DeclaredDependency, ...] = ()
    ignored: tuple[str, ...] = ()
    workspace_dependencies: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UsedPackage:
    """A package present in the resolved build graph of a workspace member."""

    name: str
    resolved_version: str
    kinds: frozenset[DependencyKind] = frozenset({DependencyKind.NORMAL})


@dataclass(frozen=True)
class BuildMetadata:
    """Parsed ``cargo metadata`` output, restricted to direct dependencies."""

    packages: tuple[UsedPackage, ...]
    workspace_members: frozenset[str] = frozenset()
    target: str | None = None


@dataclass
class ReconciliationReport:
    """Declared dependencies partitioned into used / unused / ambiguous.

    Each tuple keeps manifest declaration order. ``notes`` explains every
    classification that was not a plain graph match. ``skipped_dev`` counts
    declared dev-dependencies left out of the analysis.
    """

    used: tuple[DeclaredDependency, ...] = ()
    unused: tuple[DeclaredDependency, ...] = ()
    ambiguous: tuple[DeclaredDependency, ...] = ()
    notes: dict[DeclaredDependency, str] = field(default_factory=dict)
    skipped_dev: int = 0

    @property
    def has_unused(self) -> bool:
        return bool(self.unused)

    def all_declared(self) -> tuple[DeclaredDependency, ...]:
        return self.used + self.unused + self.ambiguous
