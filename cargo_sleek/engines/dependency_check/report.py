"""Reporter: render a ReconciliationReport for the terminal or as JSON."""

from __future__ import annotations

import json

import click

from cargo_sleek.engines.dependency_check.models import (
    DeclaredDependency,
    ReconciliationReport,
)

EXIT_OK = 0
EXIT_UNUSED = 1

_SECTIONS = (
    ("unused", "Unused dependencies", "red"),
    ("ambiguous", "Needs manual review", "yellow"),
    ("used", "Used dependencies", "green"),
)


def exit_code(report: ReconciliationReport) -> int:
    """0 when nothing is unused, ``EXIT_UNUSED`` otherwise."""
    return EXIT_UNUSED if report.has_unused else EXIT_OK


def _describe(dep: DeclaredDependency, note: str | None) -> str:
    label = dep.kind.value + (", optional" if dep.optional else "")
    text = f"{dep.name} ({label})"
    if note:
        text += f" - {note}"
    return text


def render_text(report: ReconciliationReport, *, color: bool = False) -> str:
    """Human-readable summary grouped by classification.

    Output depends only on the report, so an unchanged manifest and graph
    render to identical text on every run.
    """
    lines: list[str] = []
    for attr, title, fg in _SECTIONS:
        deps: tuple[DeclaredDependency, ...] = getattr(report, attr)
        if not deps:
            continue
        heading = f"{title} ({len(deps)}):"
        lines.append(click.style(heading, fg=fg, bold=True) if color else heading)
        for dep in deps:
            lines.append(f"  {_describe(dep, report.notes.get(dep))}")
        lines.append("")

    total = len(report.all_declared())
    if total == 0 and report.skipped_dev:
        lines.append("No dependencies checked.")
    elif total == 0:
        lines.append("No dependencies declared.")
    elif report.has_unused:
        summary = f"{len(report.unused)} of {total} declared dependencies look unused."
        lines.append(click.style(summary, fg="red", bold=True) if color else summary)
    else:
        summary = f"All {total} declared dependencies are accounted for."
        lines.append(click.style(summary, fg="green", bold=True) if color else summary)
    if report.skipped_dev:
        lines.append(
            f"{report.skipped_dev} dev-dependencies not checked (use --include-dev)."
        )
    return "\n".join(lines)


def render_json(report: ReconciliationReport) -> str:
    """Stable JSON rendering for scripts and CI."""

    def rows(deps: tuple[DeclaredDependency, ...]) -> list[dict]:
        return [
            {
                "name": d.name,
                "version_requirement": d.version_requirement,
                "kind": d.kind.value,
                "optional": d.optional,
                "package": d.package,
                "target": d.target,
                "note": report.notes.get(d),
            }
            for d in deps
        ]

    payload = {
        "unused": rows(report.unused),
        "ambiguous": rows(report.ambiguous),
        "used": rows(report.used),
        "skipped_dev": report.skipped_dev,
        "exit_code": exit_code(report),
    }
    return json.dumps(payload, indent=2, sort_keys=True)
