"""Tests for the cargo metadata reader: subprocess mocked, no cargo needed."""

from __future__ import annotations

import json
import subprocess
from unittest.mock import patch

import pytest

from cargo_sleek.engines.dependency_check.metadata import (
    host_target,
    metadata_command,
    parse_metadata,
    read_metadata,
)
from cargo_sleek.engines.dependency_check.models import DependencyKind, UsedPackage
from cargo_sleek.exceptions import (
    MetadataParseError,
    MetadataTimeoutError,
    MetadataUnavailableError,
)

_RUN = "cargo_sleek.engines.dependency_check.metadata.subprocess.run"


def completed(cmd, stdout=b"", stderr=b"", returncode=0):
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


# ── Command line ─────────────────────────────────────────────────────────


class TestMetadataCommand:
    def test_default(self):
        assert metadata_command() == ["cargo", "metadata", "--format-version", "1"]

    def test_never_passes_no_deps(self):
        assert "--no-deps" not in metadata_command(all_features=True)

    def test_platform_and_features(self):
        cmd = metadata_command(
            "/opt/cargo",
            target="x86_64-unknown-linux-gnu",
            features=["a", "b"],
            no_default_features=True,
        )
        assert cmd == [
            "/opt/cargo",
            "metadata",
            "--format-version",
            "1",
            "--filter-platform",
            "x86_64-unknown-linux-gnu",
            "--features",
            "a,b",
            "--no-default-features",
        ]


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseMetadata:
    def test_direct_dependencies(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.190", [None]), ("clap", "4.4.8", [None])])
        metadata = parse_metadata(doc)
        assert metadata.packages == (
            UsedPackage(name="serde", resolved_version="1.0.190"),
            UsedPackage(name="clap", resolved_version="4.4.8"),
        )
        assert metadata.workspace_members == frozenset({"app"})

    def test_transitive_packages_excluded(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.190", [None])])
        # serde_derive appears in the graph but only as serde's dependency
        doc["packages"].append({"id": "sd", "name": "serde_derive", "version": "1.0.190"})
        doc["resolve"]["nodes"].append({"id": "sd", "deps": []})
        doc["resolve"]["nodes"][1]["deps"] = [{"name": "serde_derive", "pkg": "sd"}]
        names = [p.name for p in parse_metadata(doc).packages]
        assert names == ["serde"]

    def test_dev_only_edges_dropped_by_default(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.0", [None]), ("criterion", "0.5.1", ["dev"])])
        assert [p.name for p in parse_metadata(doc).packages] == ["serde"]

    def test_dev_edges_kept_when_requested(self, metadata_doc):
        doc = metadata_doc(deps=[("criterion", "0.5.1", ["dev"])])
        pkg = parse_metadata(doc, include_dev=True).packages[0]
        assert pkg.kinds == frozenset({DependencyKind.DEV})

    def test_mixed_kinds_merged(self, metadata_doc):
        doc = metadata_doc(deps=[("cc", "1.0.83", ["build", None, "dev"])])
        pkg = parse_metadata(doc).packages[0]
        assert pkg.kinds == frozenset({DependencyKind.BUILD, DependencyKind.NORMAL})

    def test_missing_dep_kinds_means_normal(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.0", [None])])
        del doc["resolve"]["nodes"][0]["deps"][0]["dep_kinds"]
        assert parse_metadata(doc).packages[0].kinds == frozenset({DependencyKind.NORMAL})

    def test_package_restricts_to_one_member(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.0", [None])], extra_members=["tool"])
        assert parse_metadata(doc, package="tool").packages == ()
        assert len(parse_metadata(doc, package="app").packages) == 1
        assert parse_metadata(doc).workspace_members == frozenset({"app", "tool"})

    def test_empty_graph(self, metadata_doc):
        assert parse_metadata(metadata_doc()).packages == ()

    def test_null_resolve(self, metadata_doc):
        doc = metadata_doc()
        doc["resolve"] = None
        with pytest.raises(MetadataParseError, match="no-deps"):
            parse_metadata(doc)

    def test_missing_packages(self):
        with pytest.raises(MetadataParseError, match="packages"):
            parse_metadata({"resolve": {"nodes": []}})

    def test_not_an_object(self):
        with pytest.raises(MetadataParseError):
            parse_metadata([1, 2, 3])

    def test_unknown_package_reference(self, metadata_doc):
        doc = metadata_doc()
        doc["resolve"]["nodes"][0]["deps"] = [{"name": "ghost", "pkg": "ghost 0.1.0"}]
        with pytest.raises(MetadataParseError, match="unknown package"):
            parse_metadata(doc)

    def test_unknown_dep_kind(self, metadata_doc):
        doc = metadata_doc(deps=[("serde", "1.0.0", ["weird"])])
        with pytest.raises(MetadataParseError, match="unknown dependency kind"):
            parse_metadata(doc)


# ── Subprocess handling ──────────────────────────────────────────────────


class TestReadMetadata:
    def test_success(self, tmp_path, metadata_doc, fake_cargo_metadata):
        doc = metadata_doc(deps=[("serde", "1.0.0", [None])])
        with patch(_RUN, side_effect=fake_cargo_metadata(doc)) as run:
            metadata = read_metadata(tmp_path, target="x86_64-unknown-linux-gnu", timeout=5)
        assert [p.name for p in metadata.packages] == ["serde"]
        assert metadata.target == "x86_64-unknown-linux-gnu"
        args, kwargs = run.call_args
        assert args[0][:2] == ["cargo", "metadata"]
        assert kwargs["cwd"] == tmp_path
        assert kwargs["timeout"] == 5

    def test_manifest_path_forwarded(self, tmp_path, fake_cargo_metadata):
        manifest = tmp_path / "Cargo.toml"
        with patch(_RUN, side_effect=fake_cargo_metadata()) as run:
            read_metadata(tmp_path, manifest_path=manifest)
        assert run.call_args[0][0][-2:] == ["--manifest-path", str(manifest)]

    def test_cargo_not_installed(self, tmp_path):
        with patch(_RUN, side_effect=FileNotFoundError(2, "No such file or directory")):
            with pytest.raises(MetadataUnavailableError) as exc_info:
                read_metadata(tmp_path, cargo="cargo-missing")
        assert "cargo-missing" in str(exc_info.value)
        assert exc_info.value.returncode is None

    def test_nonzero_exit_includes_stderr(self, tmp_path, fake_cargo_metadata):
        fake = fake_cargo_metadata(returncode=101, stderr=b"error: failed to parse manifest")
        with patch(_RUN, side_effect=fake):
            with pytest.raises(MetadataUnavailableError) as exc_info:
                read_metadata(tmp_path)
        assert exc_info.value.returncode == 101
        assert "failed to parse manifest" in str(exc_info.value)

    def test_timeout(self, tmp_path):
        with patch(_RUN, side_effect=subprocess.TimeoutExpired(["cargo"], 2)):
            with pytest.raises(MetadataTimeoutError) as exc_info:
                read_metadata(tmp_path, timeout=2)
        assert exc_info.value.timeout == 2
        assert "timed out after 2s" in str(exc_info.value)

    def test_invalid_json(self, tmp_path):
        with patch(_RUN, side_effect=lambda cmd, **kw: completed(cmd, stdout=b"not json{")):
            with pytest.raises(MetadataParseError):
                read_metadata(tmp_path)

    def test_output_is_single_document(self, tmp_path, metadata_doc):
        payload = json.dumps(metadata_doc()).encode() * 2
        with patch(_RUN, side_effect=lambda cmd, **kw: completed(cmd, stdout=payload)):
            with pytest.raises(MetadataParseError):
                read_metadata(tmp_path)


class TestHostTarget:
    def test_parses_host_line(self):
        out = "rustc 1.74.0 (79e9716c9 2023-11-13)\nbinary: rustc\nhost: aarch64-apple-darwin\n"
        with patch(_RUN, side_effect=lambda cmd, **kw: completed(cmd, stdout=out)):
            assert host_target("rustc") == "aarch64-apple-darwin"

    def test_rustc_missing(self):
        with patch(_RUN, side_effect=FileNotFoundError("rustc")):
            assert host_target("rustc") is None

    def test_rustc_fails(self):
        with patch(_RUN, side_effect=lambda cmd, **kw: completed(cmd, stderr="boom", returncode=1)):
            assert host_target("rustc") is None
