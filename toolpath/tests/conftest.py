"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from pathlib import Path as FsPath

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from toolpath.document import Base, Graph, Path, Step
from toolpath.signing import SshSigningKey


@pytest.fixture
def branching_steps() -> list[Step]:
    """s1 <- s2a (abandoned), s1 <- s2 <- s3 (head)."""
    s1 = (
        Step.new("s1", "human:alex", "2026-01-29T10:00:00Z")
        .with_raw_change("src/main.rs", "@@ -1 +1 @@\n-old\n+new")
        .with_intent("Initial change")
    )
    s2a = (
        Step.new("s2a", "agent:claude-code", "2026-01-29T10:05:00Z")
        .with_parent("s1")
        .with_raw_change("src/main.rs", "@@ -1 +1 @@\n-new\n+experiment")
        .with_intent("Try an approach that was abandoned")
    )
    s2 = (
        Step.new("s2", "agent:claude-code", "2026-01-29T10:10:00Z")
        .with_parent("s1")
        .with_raw_change("src/lib.rs", "@@ -0,0 +1 @@\n+pub fn helper() {}")
    )
    s3 = (
        Step.new("s3", "human:alex", "2026-01-29T10:20:00Z")
        .with_parent("s2")
        .with_raw_change("src/main.rs", "@@ -1 +1 @@\n-new\n+final")
        .with_structural_change("src/main.rs", "rename_function", **{"from": "foo", "to": "bar"})
    )
    return [s1, s2a, s2, s3]


@pytest.fixture
def branching_path(branching_steps: list[Step]) -> Path:
    base = Base.vcs("github:org/repo", "abc123")
    return Path.new("pr-42", base, "s3", branching_steps).with_title("Add helper")


@pytest.fixture
def five_step_path() -> Path:
    """Linear path with two agent-authored steps (s2, s4)."""
    actors = ["human:alex", "agent:claude-code", "human:alex", "agent:copilot", "tool:rustfmt"]
    steps = []
    parent = None
    for i, actor in enumerate(actors, start=1):
        step = Step.new(f"s{i}", actor, f"2026-01-29T10:0{i}:00Z").with_raw_change(f"file{i}.txt", "+x")
        if parent:
            step = step.with_parent(parent)
        steps.append(step)
        parent = step.id
    return Path.new("linear", None, "s5", steps)


@pytest.fixture
def vcs_path() -> Path:
    """Path derived from a VCS history; s2 carries revision abc123."""
    steps = [
        Step.new("c1", "human:alex", "2026-01-29T09:00:00Z")
        .with_raw_change("README.md", "+hello")
        .with_vcs_source("git", "000aaa"),
        Step.new("c2", "human:alex", "2026-01-29T09:30:00Z")
        .with_parent("c1")
        .with_raw_change("src/main.rs", "+fn main() {}")
        .with_vcs_source("git", "abc123"),
    ]
    return Path.new("git-main", Base.vcs("github:org/repo", "main"), "c2", steps)


@pytest.fixture
def agent_path() -> Path:
    """Agent session whose second step produced revision abc123."""
    steps = [
        Step.new("a1", "agent:claude-code", "2026-01-29T09:10:00Z")
        .with_raw_change("src/main.rs", "+// draft")
        .with_intent("Sketch main"),
        Step.new("a2", "agent:claude-code", "2026-01-29T09:25:00Z")
        .with_parent("a1")
        .with_raw_change("src/main.rs", "+fn main() {}")
        .with_vcs_source("git", "abc123"),
    ]
    return Path.new("session-1", None, "a2", steps)


@pytest.fixture
def correlatable_graph(vcs_path: Path, agent_path: Path) -> Graph:
    return Graph.new("release", [vcs_path, agent_path], title="Release 1")


@pytest.fixture
def signing_key() -> SshSigningKey:
    return SshSigningKey.generate()


@pytest.fixture
def key_file(tmp_path: FsPath) -> FsPath:
    """An unencrypted OpenSSH Ed25519 private key on disk."""
    private_key = ed25519.Ed25519PrivateKey.generate()
    data = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        serialization.NoEncryption(),
    )
    path = tmp_path / "id_ed25519"
    path.write_bytes(data)
    return path


@pytest.fixture
def write_json(tmp_path: FsPath):
    """Write a JSON value to a file under tmp_path and return its path."""

    def _write(name: str, value) -> FsPath:
        path = tmp_path / name
        path.write_text(json.dumps(value), encoding="utf-8")
        return path

    return _write
