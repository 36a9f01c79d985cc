"""
Invariant checks for toolpath documents.

Parsing only checks shape. The checks here enforce the model invariants
that parsing cannot see:

- step-id-unique: Step ids are unique within their Path
- parent-in-path: parent references resolve inside the same Path
- head-resolves: a non-empty Path's head is one of its steps
- path-id-unique: inline Path ids are unique within their Graph

Violations raise and are never auto-corrected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..errors import (
    CrossPathParentError,
    DanglingReferenceError,
    DuplicatePathIdError,
    DuplicateStepIdError,
)
from .envelope import Document, DocumentKind
from .types import Graph, Path, PathOrRef, Step


@dataclass(frozen=True)
class Invariant:
    """A model invariant and the error raised when it breaks."""

    id: str
    statement: str
    error: type[Exception]


INVARIANTS = {
    "step-id-unique": Invariant(
        id="step-id-unique",
        statement="Step ids are unique within their Path.",
        error=DuplicateStepIdError,
    ),
    "parent-in-path": Invariant(
        id="parent-in-path",
        statement="Parent references resolve to steps of the same Path.",
        error=CrossPathParentError,
    ),
    "head-resolves": Invariant(
        id="head-resolves",
        statement="A non-empty Path's head names one of its steps.",
        error=DanglingReferenceError,
    ),
    "path-id-unique": Invariant(
        id="path-id-unique",
        statement="Inline Path ids are unique within their Graph.",
        error=DuplicatePathIdError,
    ),
}


def strict_step_index(steps: Iterable[Step], path_id: str = "") -> Mapping[str, Step]:
    """Build an id -> Step map, raising on duplicate ids."""
    index: dict[str, Step] = {}
    for step in steps:
        if step.id in index:
            raise DuplicateStepIdError(path_id, step.id)
        index[step.id] = step
    return index


def check_path(path: Path) -> None:
    """Raise the first invariant violation found in a Path."""
    index = strict_step_index(path.steps, path.id)
    for step in path.steps:
        for parent in step.parents:
            if parent not in index:
                raise CrossPathParentError(path.id, step.id, parent)
    if path.steps and path.head not in index:
        raise DanglingReferenceError(path.id, "head", path.head)


def check_unique_path_ids(entries: Iterable[PathOrRef], graph_id: str | None = None) -> None:
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, Path):
            continue
        if entry.id in seen:
            raise DuplicatePathIdError(entry.id, graph_id)
        seen.add(entry.id)


def check_graph(graph: Graph) -> None:
    """Raise the first invariant violation found in a Graph or its inline Paths."""
    check_unique_path_ids(graph.paths, graph.id)
    for path in graph.inline_paths:
        check_path(path)


def check_document(document: Document) -> None:
    if document.kind is DocumentKind.GRAPH:
        check_graph(document.as_graph())
    elif document.kind is DocumentKind.PATH:
        check_path(document.as_path())
    # A lone Step has no scoped ids to check.
