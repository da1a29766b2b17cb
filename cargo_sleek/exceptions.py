"""Custom exceptions for cargo-sleek."""

from __future__ import annotations

from pathlib import Path


class SleekError(Exception):
    """Base exception for all cargo-sleek errors."""


class ManifestError(SleekError):
    """Base for errors raised while reading Cargo.toml."""

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(message)


class ManifestNotFoundError(ManifestError):
    """Raised when no manifest exists at the given path."""

    def __init__(self, path: Path | str):
        super().__init__(path, f"manifest not found: {path}")


class ManifestReadError(ManifestError):
    """Raised when the manifest exists but cannot be read (permissions, I/O)."""

    def __init__(self, path: Path | str, reason: str):
        self.reason = reason
        super().__init__(path, f"cannot read manifest {path}: {reason}")


class ManifestParseError(ManifestError):
    """Raised when the manifest is malformed (bad TOML, wrong value types)."""

    def __init__(self, path: Path | str, reason: str):
        self.reason = reason
        super().__init__(path, f"failed to parse manifest {path}: {reason}")


class MetadataError(SleekError):
    """Base for errors raised while reading ``cargo metadata`` output."""

    def __init__(self, command: list[str], message: str):
        self.command = list(command)
        super().__init__(message)


class MetadataUnavailableError(MetadataError):
    """Raised when ``cargo metadata`` cannot be run or exits non-zero."""

    def __init__(self, command: list[str], detail: str, returncode: int | None = None):
        self.detail = detail
        self.returncode = returncode
        message = f"`{' '.join(command)}` failed"
        if returncode is not None:
            message += f" (exit {returncode})"
        if detail:
            message += f": {detail}"
        super().__init__(command, message)


class MetadataParseError(MetadataError):
    """Raised when ``cargo metadata`` output cannot be decoded."""

    def __init__(self, command: list[str], reason: str):
        self.reason = reason
        super().__init__(command, f"could not decode output of `{' '.join(command)}`: {reason}")


class MetadataTimeoutError(MetadataError):
    """Raised when ``cargo metadata`` does not finish within the timeout."""

    def __init__(self, command: list[str], timeout: float):
        self.timeout = timeout
        super().__init__(command, f"`{' '.join(command)}` timed out after {timeout:g}s")


class StoreError(SleekError):
    """Raised when a persisted store (usage counters, build log) is corrupt."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"corrupt store {path}: {reason}")


class CargoNotFoundError(SleekError):
    """Raised when the cargo executable cannot be started for a wrapped command."""

    def __init__(self, cargo: str, reason: str | None = None):
        self.cargo = cargo
        self.reason = reason
        if reason is None:
            super().__init__(f"cargo executable not found: {cargo}")
        else:
            super().__init__(f"cannot run cargo executable {cargo}: {reason}")
