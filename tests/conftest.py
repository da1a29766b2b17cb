"""Shared pytest fixtures for cargo-sleek tests."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def _root_id(name: str) -> str:
    return f"path+file:///work/{name}#0.1.0"


def build_metadata(
    root: str = "app",
    deps: list[tuple[str, str, list[str | None]]] | None = None,
    extra_members: list[str] | None = None,
) -> dict:
    """A minimal ``cargo metadata --format-version 1`` document.

    *deps* are the root package's direct edges as (name, version, dep kinds),
    where a kind of None means a normal dependency.
    """
    root_id = _root_id(root)
    packages = [{"id": root_id, "name": root, "version": "0.1.0"}]
    node_deps = []
    nodes = []
    for name, version, kinds in deps or []:
        pkg_id = f"{CRATES_IO}#{name}@{version}"
        packages.append({"id": pkg_id, "name": name, "version": version})
        node_deps.append(
            {
                "name": name.replace("-", "_"),
                "pkg": pkg_id,
                "dep_kinds": [{"kind": k, "target": None} for k in kinds],
            }
        )
        nodes.append({"id": pkg_id, "deps": [], "dependencies": [], "features": []})

    members = [root_id]
    for member in extra_members or []:
        member_id = _root_id(member)
        packages.append({"id": member_id, "name": member, "version": "0.1.0"})
        members.append(member_id)
        nodes.append({"id": member_id, "deps": [], "dependencies": [], "features": []})

    nodes.insert(
        0,
        {
            "id": root_id,
            "deps": node_deps,
            "dependencies": [d["pkg"] for d in node_deps],
            "features": [],
        },
    )
    return {
        "packages": packages,
        "workspace_members": members,
        "resolve": {"nodes": nodes, "root": root_id},
        "target_directory": "/work/target",
        "version": 1,
    }


def _completed(cmd, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def metadata_doc():
    return build_metadata


@pytest.fixture
def fake_cargo_metadata():
    """Build a ``subprocess.run`` side effect that answers ``cargo metadata``."""

    def factory(document: dict | None = None, *, returncode: int = 0, stderr: bytes = b""):
        payload = json.dumps(document if document is not None else build_metadata()).encode()

        def run(cmd, *args, **kwargs):
            return _completed(cmd, stdout=payload, stderr=stderr, returncode=returncode)

        return run

    return factory


@pytest.fixture
def write_manifest(tmp_path: Path):
    """Write a Cargo.toml into tmp_path; a [package] header is added unless present."""

    def write(body: str = "", *, header: bool = True) -> Path:
        path = tmp_path / "Cargo.toml"
        prefix = '[package]\nname = "app"\nversion = "0.1.0"\n\n' if header else ""
        path.write_text(prefix + body)
        return path

    return write


@pytest.fixture
def sleek_home(tmp_path: Path, monkeypatch) -> Path:
    """Point CARGO_SLEEK_HOME at a temp dir and clear other overrides."""
    home = tmp_path / "sleek-home"
    monkeypatch.setenv("CARGO_SLEEK_HOME", str(home))
    for key in (
        "CARGO_SLEEK_CARGO",
        "CARGO_SLEEK_METADATA_TIMEOUT",
        "CARGO_SLEEK_BUILD_TOOLS",
        "CARGO_SLEEK_LOG_LEVEL",
        "CARGO_SLEEK_LOG_FORMAT",
    ):
        monkeypatch.delenv(key, raising=False)
    return home
