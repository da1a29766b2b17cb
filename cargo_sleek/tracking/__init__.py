"""Usage counters and build timing, persisted between runs."""

from cargo_sleek.tracking.build_timer import BuildRecord, BuildSummary, BuildTimer, run_cargo
from cargo_sleek.tracking.usage import CommandUsage, Invocation, UsageTracker

__all__ = [
    "BuildRecord",
    "BuildSummary",
    "BuildTimer",
    "CommandUsage",
    "Invocation",
    "UsageTracker",
    "run_cargo",
]
