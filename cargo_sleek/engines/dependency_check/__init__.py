"""Dependency check engine: find Cargo.toml entries missing from the resolved graph."""

from cargo_sleek.engines.dependency_check.checker import CheckOptions, check_dependencies
from cargo_sleek.engines.dependency_check.manifest import read_manifest
from cargo_sleek.engines.dependency_check.metadata import read_metadata
from cargo_sleek.engines.dependency_check.models import (
    BuildMetadata,
    DeclaredDependency,
    DependencyKind,
    Manifest,
    ReconciliationReport,
    UsedPackage,
)
from cargo_sleek.engines.dependency_check.reconcile import (
    DEFAULT_BUILD_TOOLS,
    ExclusionPolicy,
    normalize_name,
    reconcile,
)

__all__ = [
    "DEFAULT_BUILD_TOOLS",
    "BuildMetadata",
    "CheckOptions",
    "DeclaredDependency",
    "DependencyKind",
    "ExclusionPolicy",
    "Manifest",
    "ReconciliationReport",
    "UsedPackage",
    "check_dependencies",
    "normalize_name",
    "read_manifest",
    "read_metadata",
    "reconcile",
]
