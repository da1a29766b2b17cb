"""Command-usage tracker: per-command counts plus recent timestamps and durations.

Store layout (``usage.json``)::

    {
      "build": {
        "count": 3,
        "runs": [{"at": "2024-03-01T12:00:00+00:00", "seconds": 41.2}, ...]
      }
    }

``runs`` keeps the most recent :data:`MAX_RUNS` invocations, oldest first.
``seconds`` is null for commands that are counted but not timed.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from cargo_sleek.exceptions import StoreError

log = structlog.get_logger(__name__)

MAX_RUNS = 50


def atomic_write_text(path: Path, content: str) -> None:
    """Write *content* to *path* via a temp file + rename in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


@dataclass(frozen=True)
class Invocation:
    timestamp: datetime
    duration: float | None = None  # seconds


@dataclass(frozen=True)
class CommandUsage:
    """Everything stored for one command name."""

    count: int = 0
    invocations: tuple[Invocation, ...] = ()

    @property
    def timed(self) -> list[float]:
        return [i.duration for i in self.invocations if i.duration is not None]

    @property
    def average_duration(self) -> float | None:
        timed = self.timed
        return sum(timed) / len(timed) if timed else None


class UsageTracker:
    """Persisted command counters and invocation history."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> dict[str, CommandUsage]:
        """Return the stored usage; a missing or empty file means no usage yet."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(self.path, f"invalid JSON ({exc.msg})") from exc
        if not isinstance(data, dict):
            raise StoreError(self.path, "expected an object keyed by command name")
        return {command: self._decode(command, value) for command, value in data.items()}

    def record(
        self, command: str, duration: float | None = None, *, at: datetime | None = None
    ) -> int:
        """Count one run of *command* and persist it; returns the new count."""
        usage = self.load()
        current = usage.get(command, CommandUsage())
        run = Invocation(timestamp=at or datetime.now(timezone.utc), duration=duration)
        usage[command] = CommandUsage(
            count=current.count + 1,
            invocations=(current.invocations + (run,))[-MAX_RUNS:],
        )
        payload = {name: self._encode(entry) for name, entry in usage.items()}
        atomic_write_text(self.path, json.dumps(payload, indent=2, sort_keys=True) + "\n")
        log.debug(
            "usage.recorded", command=command, count=usage[command].count, duration=duration
        )
        return usage[command].count

    def counts(self) -> dict[str, int]:
        return {command: entry.count for command, entry in self.load().items()}

    def most_used(self) -> list[tuple[str, int]]:
        """Counts sorted by frequency, ties broken by name."""
        return sorted(self.counts().items(), key=lambda item: (-item[1], item[0]))

    def recent(self, limit: int = 5) -> list[tuple[str, tuple[Invocation, ...]]]:
        """The last *limit* invocations of every command, commands sorted by name."""
        return [
            (command, entry.invocations[-limit:])
            for command, entry in sorted(self.load().items())
            if entry.invocations
        ]

    def timings(self) -> list[tuple[str, float, int]]:
        """(command, average seconds, timed runs) for every command ever timed."""
        rows = []
        for command, entry in sorted(self.load().items()):
            average = entry.average_duration
            if average is not None:
                rows.append((command, average, len(entry.timed)))
        return rows

    def reset(self) -> None:
        self.path.unlink(missing_ok=True)
        log.info("usage.reset", path=str(self.path))

    # ── (de)serialization ──

    @staticmethod
    def _encode(entry: CommandUsage) -> dict[str, Any]:
        return {
            "count": entry.count,
            "runs": [
                {"at": run.timestamp.isoformat(), "seconds": run.duration}
                for run in entry.invocations
            ],
        }

    def _decode(self, command: str, value: Any) -> CommandUsage:
        # A bare integer is a count with no recorded runs.
        if isinstance(value, int) and not isinstance(value, bool):
            return CommandUsage(count=value)
        if not isinstance(value, dict):
            raise StoreError(self.path, f"entry for {command!r} must be an object")
        count = value.get("count")
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise StoreError(self.path, f"{command}.count must be a non-negative integer")
        runs = value.get("runs", [])
        if not isinstance(runs, list):
            raise StoreError(self.path, f"{command}.runs must be a list")
        invocations = []
        for run in runs:
            try:
                seconds = run.get("seconds")
                invocations.append(
                    Invocation(
                        timestamp=datetime.fromisoformat(run["at"]),
                        duration=None if seconds is None else float(seconds),
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise StoreError(self.path, f"malformed run for {command!r}: {run!r}") from exc
        return CommandUsage(count=count, invocations=tuple(invocations))
