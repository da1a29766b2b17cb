"""Build timer: run cargo, time it, append one line per build to a log."""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog

from cargo_sleek.exceptions import CargoNotFoundError

log = structlog.get_logger(__name__)

_FIELD_SEP = "\t"


@dataclass(frozen=True)
class BuildRecord:
    """One timed cargo invocation."""

    timestamp: datetime
    duration: float  # seconds
    command: str
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def to_line(self) -> str:
        return _FIELD_SEP.join(
            (
                self.timestamp.isoformat(),
                f"{self.duration:.3f}",
                self.command,
                str(self.exit_code),
            )
        )

    @classmethod
    def from_line(cls, line: str) -> BuildRecord:
        """Parse a log line; raises ValueError if it is malformed."""
        parts = line.rstrip("\n").split(_FIELD_SEP)
        if len(parts) != 4:
            raise ValueError(f"expected 4 fields, got {len(parts)}")
        timestamp, duration, command, exit_code = parts
        return cls(
            timestamp=datetime.fromisoformat(timestamp),
            duration=float(duration),
            command=command,
            exit_code=int(exit_code),
        )


@dataclass(frozen=True)
class BuildSummary:
    count: int
    average: float | None
    fastest: float | None
    slowest: float | None
    last: BuildRecord | None


def run_cargo(cargo: str, args: list[str] | tuple[str, ...]) -> int:
    """Run ``cargo <args>`` with inherited stdio and return its exit code."""
    cmd = [cargo, *args]
    log.debug("cargo.run", cmd=cmd)
    try:
        return subprocess.run(cmd).returncode
    except FileNotFoundError as exc:
        raise CargoNotFoundError(cargo) from exc
    except OSError as exc:
        raise CargoNotFoundError(cargo, exc.strerror or str(exc)) from exc


class BuildTimer:
    """Time cargo builds and keep an append-only log of the results."""

    def __init__(self, log_path: Path | str, cargo: str = "cargo") -> None:
        self.log_path = Path(log_path)
        self.cargo = cargo

    def run(self, args: list[str] | tuple[str, ...]) -> BuildRecord:
        """Run ``cargo <args>``, append the timing and return the record.

        Failed builds are logged as well; the record carries cargo's exit code.
        """
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        exit_code = run_cargo(self.cargo, args)
        record = BuildRecord(
            timestamp=started_at,
            duration=time.monotonic() - start,
            command=" ".join(["cargo", *args]),
            exit_code=exit_code,
        )
        self.append(record)
        log.info(
            "build.timed",
            command=record.command,
            duration=round(record.duration, 3),
            exit_code=exit_code,
        )
        return record

    def append(self, record: BuildRecord) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_path, "a", encoding="utf-8") as fh:
            fh.write(record.to_line() + "\n")

    def history(self) -> list[BuildRecord]:
        """All readable records, oldest first. Malformed lines are skipped."""
        if not self.log_path.exists():
            return []
        records: list[BuildRecord] = []
        with open(self.log_path, encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(BuildRecord.from_line(line))
                except ValueError as exc:
                    log.warning(
                        "build.log_line_skipped",
                        path=str(self.log_path),
                        line=lineno,
                        error=str(exc),
                    )
        return records

    def summary(self) -> BuildSummary:
        records = self.history()
        if not records:
            return BuildSummary(count=0, average=None, fastest=None, slowest=None, last=None)
        durations = [r.duration for r in records]
        return BuildSummary(
            count=len(records),
            average=sum(durations) / len(durations),
            fastest=min(durations),
            slowest=max(durations),
            last=records[-1],
        )

    def reset(self) -> None:
        self.log_path.unlink(missing_ok=True)
        log.info("build.log_reset", path=str(self.log_path))
