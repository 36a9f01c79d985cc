"""Tests for model invariant checks."""

from __future__ import annotations

import pytest

from toolpath.document import Document, Graph, Path, PathRef, Step, check_document, check_graph, check_path
from toolpath.document.validate import INVARIANTS, strict_step_index
from toolpath.errors import (
    CrossPathParentError,
    DanglingReferenceError,
    DuplicatePathIdError,
    DuplicateStepIdError,
    InvariantViolation,
    MergeError,
)


def _step(step_id: str, *parents: str) -> Step:
    step = Step.new(step_id, "human:alex", "2026-01-29T10:00:00Z")
    for parent in parents:
        step = step.with_parent(parent)
    return step


def test_valid_path_passes(branching_path: Path):
    check_path(branching_path)
    check_document(Document.of(branching_path))


def test_duplicate_step_id():
    path = Path.new("p", None, "s2", [_step("s1"), _step("s2", "s1"), _step("s1")])

    with pytest.raises(DuplicateStepIdError, match="duplicate step id 's1' in path 'p'") as exc_info:
        check_path(path)
    assert exc_info.value.step_id == "s1"


def test_parent_outside_path():
    path = Path.new("p", None, "s2", [_step("s1"), _step("s2", "other-path-step")])

    with pytest.raises(CrossPathParentError) as exc_info:
        check_path(path)
    assert exc_info.value.parent_id == "other-path-step"
    assert isinstance(exc_info.value, InvariantViolation)


def test_head_must_resolve():
    path = Path.new("p", None, "s9", [_step("s1")])

    with pytest.raises(DanglingReferenceError, match="head 's9'"):
        check_path(path)


def test_empty_path_may_name_any_head():
    check_path(Path.new("track-1", None, "none"))


def test_graph_duplicate_path_ids(branching_path: Path):
    graph = Graph.new("g", [branching_path, PathRef("https://example.com/x.json"), branching_path])

    with pytest.raises(DuplicatePathIdError) as exc_info:
        check_graph(graph)
    assert exc_info.value.path_id == "pr-42"
    assert exc_info.value.graph_id == "g"
    assert isinstance(exc_info.value, MergeError)


def test_graph_checks_inline_paths():
    bad = Path.new("p", None, "s1", [_step("s1"), _step("s1")])

    with pytest.raises(DuplicateStepIdError):
        check_document(Document.of(Graph.new("g", [bad])))


def test_lone_step_has_nothing_to_check():
    check_document(Document.of(_step("s1", "s0")))


def test_strict_step_index():
    index = strict_step_index([_step("a"), _step("b", "a")], "p")

    assert list(index) == ["a", "b"]
    with pytest.raises(DuplicateStepIdError):
        strict_step_index([_step("a"), _step("a")], "p")


def test_invariant_table_names_errors():
    assert INVARIANTS["step-id-unique"].error is DuplicateStepIdError
    assert INVARIANTS["path-id-unique"].error is DuplicatePathIdError
    assert all(inv.id == key for key, inv in INVARIANTS.items())
