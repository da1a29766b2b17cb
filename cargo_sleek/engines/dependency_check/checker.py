"""check-deps pipeline: read manifest, read metadata, reconcile."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from cargo_sleek.core.config import DEFAULT_METADATA_TIMEOUT
from cargo_sleek.engines.dependency_check.manifest import read_manifest
from cargo_sleek.engines.dependency_check.metadata import host_target, read_metadata
from cargo_sleek.engines.dependency_check.models import (
    DependencyKind,
    ReconciliationReport,
)
from cargo_sleek.engines.dependency_check.reconcile import (
    DEFAULT_BUILD_TOOLS,
    ExclusionPolicy,
    reconcile,
)

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckOptions:
    """Knobs for a single check-deps run."""

    cargo: str = "cargo"
    timeout: float = DEFAULT_METADATA_TIMEOUT
    target: str | None = None
    detect_host: bool = True
    features: tuple[str, ...] = ()
    all_features: bool = False
    no_default_features: bool = False
    include_dev: bool = False
    build_tools: frozenset[str] = DEFAULT_BUILD_TOOLS
    allowed: frozenset[str] = field(default_factory=frozenset)


def check_dependencies(
    project: Path | str, options: CheckOptions | None = None
) -> ReconciliationReport:
    """Run the full check for the manifest at (or in) *project*.

    Either reader failing aborts the run with the reader's exception; no
    report is ever built from one side of the comparison.
    """
    options = options or CheckOptions()
    manifest = read_manifest(project)
    project_dir = manifest.path.parent

    target = options.target
    if target is None and options.detect_host:
        target = host_target()
        if target is None:
            log.warning("check.no_platform_filter", reason="host triple unavailable")

    metadata = read_metadata(
        project_dir,
        cargo=options.cargo,
        timeout=options.timeout,
        target=target,
        features=options.features,
        all_features=options.all_features,
        no_default_features=options.no_default_features,
        include_dev=options.include_dev,
        manifest_path=manifest.path,
        package=manifest.package_name,
    )

    declared = [
        dep
        for dep in manifest.dependencies
        if options.include_dev or dep.kind is not DependencyKind.DEV
    ]
    policy = ExclusionPolicy(
        build_tools=options.build_tools,
        workspace_members=metadata.workspace_members,
        ignored=frozenset(manifest.ignored) | options.allowed,
    )
    report = reconcile(declared, metadata.packages, policy)
    report.skipped_dev = len(manifest.dependencies) - len(declared)
    log.info(
        "check.done",
        manifest=str(manifest.path),
        declared=len(declared),
        used=len(report.used),
        unused=len(report.unused),
        ambiguous=len(report.ambiguous),
        skipped_dev=report.skipped_dev,
    )
    return report
