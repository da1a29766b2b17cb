"""Runtime configuration, read from CARGO_SLEEK_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_ENV_HOME = "CARGO_SLEEK_HOME"
_ENV_CARGO = "CARGO_SLEEK_CARGO"
_ENV_METADATA_TIMEOUT = "CARGO_SLEEK_METADATA_TIMEOUT"
_ENV_BUILD_TOOLS = "CARGO_SLEEK_BUILD_TOOLS"
_ENV_LOG_LEVEL = "CARGO_SLEEK_LOG_LEVEL"
_ENV_LOG_FORMAT = "CARGO_SLEEK_LOG_FORMAT"

DEFAULT_METADATA_TIMEOUT = 60.0

USAGE_STORE_NAME = "usage.json"
BUILD_LOG_NAME = "build-times.log"


@dataclass(frozen=True)
class SleekConfig:
    """Resolved settings for a single invocation."""

    home: Path
    cargo: str = "cargo"
    metadata_timeout: float = DEFAULT_METADATA_TIMEOUT
    extra_build_tools: frozenset[str] = field(default_factory=frozenset)
    log_level: str = "WARNING"
    log_format: str = "console"

    @property
    def usage_store(self) -> Path:
        return self.home / USAGE_STORE_NAME

    @property
    def build_log(self) -> Path:
        return self.home / BUILD_LOG_NAME


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


def _env_list(key: str) -> frozenset[str]:
    raw = os.environ.get(key, "")
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def load_config() -> SleekConfig:
    """Build a :class:`SleekConfig` from the environment.

    Reads:
        CARGO_SLEEK_HOME              store directory (default: ~/.cargo-sleek)
        CARGO_SLEEK_CARGO             cargo executable (default: cargo)
        CARGO_SLEEK_METADATA_TIMEOUT  seconds before ``cargo metadata`` is abandoned
        CARGO_SLEEK_BUILD_TOOLS       extra comma-separated build-only crate names
        CARGO_SLEEK_LOG_LEVEL         log level (default: WARNING)
        CARGO_SLEEK_LOG_FORMAT        console | json (default: console)
    """
    home = os.environ.get(_ENV_HOME) or "~/.cargo-sleek"
    return SleekConfig(
        home=Path(home).expanduser(),
        cargo=os.environ.get(_ENV_CARGO) or "cargo",
        metadata_timeout=_env_float(_ENV_METADATA_TIMEOUT, DEFAULT_METADATA_TIMEOUT),
        extra_build_tools=_env_list(_ENV_BUILD_TOOLS),
        log_level=os.environ.get(_ENV_LOG_LEVEL, "WARNING").upper(),
        log_format=os.environ.get(_ENV_LOG_FORMAT, "console").lower(),
    )
