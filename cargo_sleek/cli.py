"""CLI entry point: cargo-sleek (also runs as the cargo subcommand `cargo sleek`).

Subcommands:
    cargo sleek stats                  # Most used commands
    cargo sleek log [--last N]         # Recent runs of every command
    cargo sleek time-tracker           # Average run time per command
    cargo sleek reset [--all]          # Clear usage counters (and build log)
    cargo sleek check-deps [PATH]      # Find unused dependencies
    cargo sleek build [ARGS...]        # Timed `cargo build`
    cargo sleek build-time             # Logged build durations
    cargo sleek clean [ARGS...]        # Timed `cargo clean`
    cargo sleek <cargo-cmd> [ARGS...]  # Any other cargo command, timed and counted
"""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import NoReturn

import click
import structlog

from cargo_sleek import __version__
from cargo_sleek.core.config import SleekConfig, load_config
from cargo_sleek.core.logging import setup_logging
from cargo_sleek.exceptions import SleekError, StoreError
from cargo_sleek.tracking.build_timer import BuildRecord, BuildTimer
from cargo_sleek.tracking.usage import UsageTracker

log = structlog.get_logger(__name__)

EXIT_ERROR = 2

def _fail(exc: SleekError) -> NoReturn:
    log.error("command.failed", error=str(exc), error_type=type(exc).__name__)
    click.echo(f"error: {exc}", err=True)
    sys.exit(EXIT_ERROR)


def _record_usage(ctx: click.Context, duration: float | None = None) -> None:
    """Count this subcommand; a broken store must not block the command itself."""
    config: SleekConfig = ctx.obj
    try:
        UsageTracker(config.usage_store).record(ctx.info_name or "unknown", duration)
    except (StoreError, OSError) as exc:
        log.warning("usage.record_failed", command=ctx.info_name, error=str(exc))


def _run_timed(ctx: click.Context, cargo_args: list[str]) -> BuildRecord:
    """Run cargo through the build timer and count the run with its duration."""
    config: SleekConfig = ctx.obj
    try:
        record = BuildTimer(config.build_log, config.cargo).run(cargo_args)
    except SleekError as e:
        _fail(e)
    _record_usage(ctx, record.duration)
    return record


def _finish(label: str, record: BuildRecord) -> None:
    status = click.style("ok", fg="green") if record.succeeded else click.style("failed", fg="red")
    click.echo(f"{label} {status} in {record.duration:.2f}s", err=True)
    if not record.succeeded:
        sys.exit(record.exit_code)


class CargoArgsCommand(click.Command):
    """Command whose arguments all go to cargo verbatim, ``--`` included."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        ctx.params["cargo_args"] = tuple(args)
        return []


def _split_features(raw: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(f for value in raw for f in re.split(r"[,\s]+", value) if f)


def _cargo_command(name: str) -> click.Command:
    """A throwaway command that forwards ``name ARGS...`` to cargo."""

    @click.command(name, cls=CargoArgsCommand, add_help_option=False)
    @click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
    @click.pass_context
    def forward(ctx: click.Context, cargo_args: tuple[str, ...]) -> None:
        record = _run_timed(ctx, [name, *cargo_args])
        _finish(record.command, record)

    return forward


class CargoGroup(click.Group):
    """Group that hands unknown subcommands to cargo instead of rejecting them."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        command = super().get_command(ctx, cmd_name)
        if command is None and not cmd_name.startswith("-"):
            command = _cargo_command(cmd_name)
        return command


@click.group(cls=CargoGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.version_option(__version__, prog_name="cargo-sleek")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """cargo-sleek: track and optimize cargo usage.

    Any command not listed below is run as `cargo <command>`, timed and counted.
    """
    try:
        config = load_config()
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    setup_logging("DEBUG" if verbose else config.log_level, config.log_format)
    ctx.obj = config


@main.command("stats")
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show command usage stats."""
    _record_usage(ctx)
    try:
        ranked = UsageTracker(ctx.obj.usage_store).most_used()
    except SleekError as e:
        _fail(e)

    if not ranked:
        click.echo("No commands recorded yet.")
        return
    click.secho("Most used cargo-sleek commands:", fg="cyan", bold=True)
    for i, (command, count) in enumerate(ranked, start=1):
        times = "time" if count == 1 else "times"
        rank = click.style(str(i), fg="yellow")
        click.echo(f"  {rank}. {click.style(command, fg='green')} ({count} {times})")


@main.command("log")
@click.option(
    "--last", "last_n", type=click.IntRange(min=1), default=5, help="Runs to show per command"
)
@click.pass_context
def show_log(ctx: click.Context, last_n: int) -> None:
    """Show when each command was last run."""
    _record_usage(ctx)
    try:
        recent = UsageTracker(ctx.obj.usage_store).recent(last_n)
    except SleekError as e:
        _fail(e)

    if not recent:
        click.echo("No commands recorded yet.")
        return
    click.secho("Command log:", fg="cyan", bold=True)
    for command, runs in recent:
        click.echo(f"{click.style(command, fg='green')}:")
        for entry in runs:
            when = click.style(entry.timestamp.isoformat(timespec="seconds"), fg="yellow")
            took = "" if entry.duration is None else f"  ({entry.duration:.2f}s)"
            click.echo(f"  {when}{took}")


@main.command("time-tracker")
@click.pass_context
def time_tracker(ctx: click.Context) -> None:
    """Show the average run time of every timed command."""
    _record_usage(ctx)
    try:
        rows = UsageTracker(ctx.obj.usage_store).timings()
    except SleekError as e:
        _fail(e)

    if not rows:
        click.echo("No timed commands recorded yet.")
        return
    click.secho("Execution time tracker:", fg="cyan", bold=True)
    for command, average, runs in rows:
        avg_ms = click.style(f"{average * 1000:.0f} ms", fg="yellow")
        click.echo(f"  {click.style(command, fg='green')} - avg {avg_ms} ({runs} run(s))")


@main.command("reset")
@click.option("--all", "reset_all", is_flag=True, help="Also clear the build-time log")
@click.pass_obj
def reset(config: SleekConfig, reset_all: bool) -> None:
    """Clear the usage counters and command log."""
    UsageTracker(config.usage_store).reset()
    click.echo("Usage counters cleared.")
    if reset_all:
        BuildTimer(config.build_log, config.cargo).reset()
        click.echo("Build-time log cleared.")


@main.command("check-deps")
@click.argument("path", required=False, default=".", type=click.Path(path_type=Path))
@click.option(
    "--manifest-path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to Cargo.toml (overrides PATH)",
)
@click.option("--target", default=None, help="Target triple to resolve for (default: host)")
@click.option("--features", multiple=True, help="Features to activate (comma or space separated)")
@click.option("--all-features", is_flag=True, help="Activate all features")
@click.option("--no-default-features", is_flag=True, help="Do not activate the default feature")
@click.option("--include-dev", is_flag=True, help="Also check [dev-dependencies]")
@click.option("--allow", "allowed", multiple=True, help="Dependency to treat as used (repeatable)")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds to wait for cargo metadata",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check_deps(
    ctx: click.Context,
    path: Path,
    manifest_path: Path | None,
    target: str | None,
    features: tuple[str, ...],
    all_features: bool,
    no_default_features: bool,
    include_dev: bool,
    allowed: tuple[str, ...],
    timeout: float | None,
    as_json: bool,
) -> None:
    """Find dependencies declared in Cargo.toml but absent from the build graph.

    Exits 0 when every dependency is accounted for, 1 when some look unused
    and 2 when the check itself could not run.
    """
    from cargo_sleek.engines.dependency_check.checker import CheckOptions, check_dependencies
    from cargo_sleek.engines.dependency_check.reconcile import DEFAULT_BUILD_TOOLS
    from cargo_sleek.engines.dependency_check.report import exit_code, render_json, render_text

    _record_usage(ctx)
    config: SleekConfig = ctx.obj
    options = CheckOptions(
        cargo=config.cargo,
        timeout=timeout if timeout is not None else config.metadata_timeout,
        target=target,
        features=_split_features(features),
        all_features=all_features,
        no_default_features=no_default_features,
        include_dev=include_dev,
        build_tools=DEFAULT_BUILD_TOOLS | config.extra_build_tools,
        allowed=frozenset(allowed),
    )

    if not as_json:
        click.secho("Analyzing dependencies...", fg="cyan", bold=True, err=True)
    try:
        report = check_dependencies(manifest_path or path, options)
    except SleekError as e:
        _fail(e)

    if as_json:
        click.echo(render_json(report))
    else:
        click.echo(render_text(report, color=True))
    sys.exit(exit_code(report))


@main.command("build", cls=CargoArgsCommand, add_help_option=False)
@click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def build(ctx: click.Context, cargo_args: tuple[str, ...]) -> None:
    """Run `cargo build` and log how long it took."""
    _finish("Build", _run_timed(ctx, ["build", *cargo_args]))


@main.command("build-time")
@click.option(
    "--last", "last_n", type=click.IntRange(min=1), default=10, help="Number of builds to list"
)
@click.pass_context
def build_time(ctx: click.Context, last_n: int) -> None:
    """Show the logged build durations."""
    _record_usage(ctx)
    config: SleekConfig = ctx.obj
    timer = BuildTimer(config.build_log, config.cargo)
    summary = timer.summary()
    if summary.count == 0:
        click.echo("No builds recorded yet.")
        return

    click.secho("Build time tracker:", fg="cyan", bold=True)
    for record in timer.history()[-last_n:]:
        if record.succeeded:
            mark = click.style("ok", fg="green")
        else:
            mark = click.style(f"exit {record.exit_code}", fg="red")
        click.echo(
            f"  {record.timestamp.isoformat(timespec='seconds')}  "
            f"{record.duration:8.2f}s  {record.command}  [{mark}]"
        )
    click.echo(
        f"\n{summary.count} build(s): avg {summary.average:.2f}s, "
        f"fastest {summary.fastest:.2f}s, slowest {summary.slowest:.2f}s"
    )


@main.command("clean", cls=CargoArgsCommand, add_help_option=False)
@click.argument("cargo_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def clean(ctx: click.Context, cargo_args: tuple[str, ...]) -> None:
    """Run `cargo clean`."""
    record = _run_timed(ctx, ["clean", *cargo_args])
    if not record.succeeded:
        sys.exit(record.exit_code)


def run() -> None:
    """Console-script entry point.

    cargo runs ``cargo-sleek sleek <args>`` for ``cargo sleek <args>``; the
    extra ``sleek`` is dropped so both spellings behave the same.
    """
    args = sys.argv[1:]
    if args and args[0] == "sleek":
        args = args[1:]
    main(args=args, prog_name="cargo-sleek")


if __name__ == "__main__":
    run()
