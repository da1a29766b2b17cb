"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from cargo_sleek.core.config import (
    BUILD_LOG_NAME,
    DEFAULT_METADATA_TIMEOUT,
    USAGE_STORE_NAME,
    load_config,
)


class TestLoadConfig:
    def test_defaults(self, sleek_home, monkeypatch):
        monkeypatch.delenv("CARGO_SLEEK_HOME")
        monkeypatch.setenv("HOME", str(sleek_home))
        config = load_config()
        assert config.home == sleek_home / ".cargo-sleek"
        assert config.cargo == "cargo"
        assert config.metadata_timeout == DEFAULT_METADATA_TIMEOUT
        assert config.extra_build_tools == frozenset()
        assert config.log_level == "WARNING"
        assert config.log_format == "console"

    def test_store_paths(self, sleek_home):
        config = load_config()
        assert config.usage_store == sleek_home / USAGE_STORE_NAME
        assert config.build_log == sleek_home / BUILD_LOG_NAME

    def test_overrides(self, sleek_home, monkeypatch):
        monkeypatch.setenv("CARGO_SLEEK_CARGO", "/opt/rust/bin/cargo")
        monkeypatch.setenv("CARGO_SLEEK_METADATA_TIMEOUT", "2.5")
        monkeypatch.setenv("CARGO_SLEEK_BUILD_TOOLS", "my-codegen, protoc-rust,,")
        monkeypatch.setenv("CARGO_SLEEK_LOG_LEVEL", "debug")
        monkeypatch.setenv("CARGO_SLEEK_LOG_FORMAT", "JSON")
        config = load_config()
        assert config.cargo == "/opt/rust/bin/cargo"
        assert config.metadata_timeout == 2.5
        assert config.extra_build_tools == frozenset({"my-codegen", "protoc-rust"})
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_home_expands_user(self, sleek_home, monkeypatch):
        monkeypatch.setenv("HOME", str(sleek_home))
        monkeypatch.setenv("CARGO_SLEEK_HOME", "~/stores")
        assert load_config().home == Path(str(sleek_home)) / "stores"

    def test_blank_timeout_uses_default(self, sleek_home, monkeypatch):
        monkeypatch.setenv("CARGO_SLEEK_METADATA_TIMEOUT", "  ")
        assert load_config().metadata_timeout == DEFAULT_METADATA_TIMEOUT

    @pytest.mark.parametrize("raw", ["soon", "0", "-3"])
    def test_invalid_timeout(self, sleek_home, monkeypatch, raw):
        monkeypatch.setenv("CARGO_SLEEK_METADATA_TIMEOUT", raw)
        with pytest.raises(ValueError, match="CARGO_SLEEK_METADATA_TIMEOUT"):
            load_config()
