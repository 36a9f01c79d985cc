"""
Cross-path correlation.

Paths derived from different sources (a VCS history, an agent session)
often describe the same change. When Steps in different Paths carry the
same ``meta.source.revision`` they are linked with symmetric
``same-change`` refs, and each correlated pair of Paths gets a path-level
relation:

- ``produces`` / ``produced-by`` when one Path is authored entirely by
  ``agent:*`` actors and the other is entirely VCS-sourced
- ``complements`` on both sides otherwise, including every ambiguous case

The pass is additive and idempotent. It builds a new Graph and never
touches ``parents``, ``steps`` membership or ``head``; refs are added with
set semantics, so correlate(correlate(g)) == correlate(g).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .document.types import TOOLPATH_URI_PREFIX, Graph, Path, PathOrRef, Ref
from .document.validate import check_unique_path_ids, strict_step_index

logger = logging.getLogger(__name__)

REL_SAME_CHANGE = "same-change"
REL_PRODUCES = "produces"
REL_PRODUCED_BY = "produced-by"
REL_COMPLEMENTS = "complements"
REL_CORRELATES = "correlates"

CORRELATES_SENTINEL = Ref(rel=REL_CORRELATES, href="self")

AGENT_ACTOR_PREFIX = "agent:"


@dataclass(frozen=True)
class StepLocation:
    path_id: str
    step_id: str

    @property
    def href(self) -> str:
        return step_href(self.path_id, self.step_id)


@dataclass(frozen=True)
class PathRelation:
    source: str  # path id carrying the ref
    rel: str
    target: str  # path id the ref points at

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "rel": self.rel, "target": self.target}


@dataclass
class CorrelationResult:
    graph: Graph
    shared_revisions: dict[str, list[StepLocation]] = field(default_factory=dict)
    relations: list[PathRelation] = field(default_factory=list)
    refs_added: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "graph_id": self.graph.id,
            "shared_revisions": {
                revision: [{"path_id": loc.path_id, "step_id": loc.step_id} for loc in locations]
                for revision, locations in self.shared_revisions.items()
            },
            "relations": [r.to_dict() for r in self.relations],
            "refs_added": self.refs_added,
        }


def step_href(path_id: str, step_id: str) -> str:
    return f"{TOOLPATH_URI_PREFIX}{path_id}/{step_id}"


def path_href(path_id: str) -> str:
    return f"{TOOLPATH_URI_PREFIX}{path_id}"


def _inline(entries: Graph | Iterable[PathOrRef]) -> list[Path]:
    if isinstance(entries, Graph):
        return entries.inline_paths
    return [p for p in entries if isinstance(p, Path)]


def revision_index(entries: Graph | Iterable[PathOrRef]) -> dict[str, list[StepLocation]]:
    """
    Map each revision marker to the steps that carry it, in document order.

    Steps without ``meta.source.revision`` and ``$ref`` entries are skipped.
    """
    index: dict[str, list[StepLocation]] = {}
    for path in _inline(entries):
        for step in path.steps:
            revision = step.revision
            if revision is None:
                continue
            index.setdefault(revision, []).append(StepLocation(path.id, step.id))
    return index


def is_agent_only(path: Path) -> bool:
    return bool(path.steps) and all(s.actor.startswith(AGENT_ACTOR_PREFIX) for s in path.steps)


def is_vcs_only(path: Path) -> bool:
    return bool(path.steps) and all(
        s.meta is not None and s.meta.source is not None and bool(s.meta.source.type)
        for s in path.steps
    )


def infer_relation(a: Path, b: Path) -> tuple[str, str]:
    """
    Relation to record on (a, b).

    Direction is only inferred when exactly one orientation fits.
    """
    a_produces_b = is_agent_only(a) and is_vcs_only(b)
    b_produces_a = is_agent_only(b) and is_vcs_only(a)
    if a_produces_b and not b_produces_a:
        return (REL_PRODUCES, REL_PRODUCED_BY)
    if b_produces_a and not a_produces_b:
        return (REL_PRODUCED_BY, REL_PRODUCES)
    return (REL_COMPLEMENTS, REL_COMPLEMENTS)


def _ref_count(entries: Iterable[PathOrRef]) -> int:
    total = 0
    for path in _inline(entries):
        total += len(path.meta.refs) if path.meta else 0
        total += sum(len(s.meta.refs) if s.meta else 0 for s in path.steps)
    return total


def correlate_graph(graph: Graph) -> CorrelationResult:
    """
    Cross-reference Steps and Paths of `graph` that share revisions.

    Raises:
        InvariantViolation: duplicate Path ids, or duplicate Step ids in a Path
    """
    check_unique_path_ids(graph.paths, graph.id)
    paths = {path.id: path for path in graph.inline_paths}
    for path in paths.values():
        strict_step_index(path.steps, path.id)

    shared = {
        revision: locations
        for revision, locations in revision_index(graph).items()
        if len({loc.path_id for loc in locations}) > 1
    }

    step_refs: dict[StepLocation, list[Ref]] = {}
    pairs: dict[tuple[str, str], None] = {}
    order = {path_id: i for i, path_id in enumerate(paths)}
    for locations in shared.values():
        for loc in locations:
            for other in locations:
                if other == loc:
                    continue
                step_refs.setdefault(loc, []).append(Ref(rel=REL_SAME_CHANGE, href=other.href))
                if other.path_id != loc.path_id:
                    pair = tuple(sorted((loc.path_id, other.path_id), key=order.__getitem__))
                    pairs[pair] = None  # type: ignore[index]

    path_refs: dict[str, list[Ref]] = {}
    relations: list[PathRelation] = []
    for a_id, b_id in pairs:
        rel_a, rel_b = infer_relation(paths[a_id], paths[b_id])
        path_refs.setdefault(a_id, []).append(Ref(rel=rel_a, href=path_href(b_id)))
        path_refs.setdefault(b_id, []).append(Ref(rel=rel_b, href=path_href(a_id)))
        relations.append(PathRelation(a_id, rel_a, b_id))
        relations.append(PathRelation(b_id, rel_b, a_id))

    entries: list[PathOrRef] = []
    for entry in graph.paths:
        if not isinstance(entry, Path):
            entries.append(entry)
            continue
        steps = [
            step.with_refs(step_refs.get(StepLocation(entry.id, step.id), ()))
            for step in entry.steps
        ]
        entries.append(entry.with_steps(steps).with_refs(path_refs.get(entry.id, ())))

    refs_added = _ref_count(entries) - _ref_count(graph.paths)
    correlated = graph.with_paths(entries).with_refs([CORRELATES_SENTINEL])
    if correlated.meta != graph.meta:
        refs_added += 1

    logger.debug(
        "correlated graph %s: %d shared revisions, %d path relations, %d refs added",
        graph.id,
        len(shared),
        len(relations),
        refs_added,
    )
    return CorrelationResult(
        graph=correlated,
        shared_revisions=shared,
        relations=relations,
        refs_added=refs_added,
    )


def correlate(graph: Graph) -> Graph:
    """Return `graph` with cross-path refs added. See correlate_graph()."""
    return correlate_graph(graph).graph
