"""Ancestry and filter queries over a Path's steps.

All functions are pure: they read a step collection and never mutate it.
Each call is O(steps + edges); callers that query repeatedly may cache
step_index().
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Sequence

from .document.types import Step, parse_instant


def step_index(steps: Iterable[Step]) -> Mapping[str, Step]:
    """Build an id -> Step lookup.

    Tolerant of duplicate ids: the last step with a given id wins. Use
    document.validate.strict_step_index where duplicates must be fatal.
    """
    return {step.id: step for step in steps}


def ancestor_ids(steps: Iterable[Step], from_id: str) -> set[str]:
    """Ids of every step reachable from `from_id` over parent edges, inclusive."""
    index = step_index(steps)
    if from_id not in index:
        return set()

    visited: set[str] = set()
    stack = [from_id]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        step = index.get(current)
        if step is None:
            continue  # parent outside this step set
        visited.add(current)
        for parent in step.parents:
            if parent not in visited:
                stack.append(parent)
    return visited


def ancestors(steps: Sequence[Step], from_id: str) -> set[Step]:
    """Steps on the ancestry of `from_id`, including that step.

    A missing `from_id` yields an empty set.
    """
    ids = ancestor_ids(steps, from_id)
    return {step for step in steps if step.id in ids}


def dead_ends(steps: Sequence[Step], head_id: str) -> set[Step]:
    """Steps not on the ancestry of `head_id`: abandoned branches."""
    active = ancestor_ids(steps, head_id)
    return {step for step in steps if step.id not in active}


def is_dead_end(steps: Sequence[Step], head_id: str, step_id: str) -> bool:
    return step_id not in ancestor_ids(steps, head_id)


def filter_by_actor(steps: Iterable[Step], prefix: str) -> list[Step]:
    """Steps whose actor starts with `prefix` (e.g. "human:", "agent:claude")."""
    return [step for step in steps if step.actor.startswith(prefix)]


def filter_by_artifact(steps: Iterable[Step], artifact: str) -> list[Step]:
    """Steps whose change map touches `artifact`."""
    return [step for step in steps if artifact in step.change]


def _as_instant(value: datetime | str) -> datetime:
    if isinstance(value, str):
        return parse_instant(value)
    if value.tzinfo is None:
        return parse_instant(value.isoformat())
    return value


def filter_by_time_range(
    steps: Iterable[Step],
    start: datetime | str | None,
    end: datetime | str | None,
) -> list[Step]:
    """Steps with start <= timestamp <= end. A None bound is open."""
    lower = _as_instant(start) if start is not None else None
    upper = _as_instant(end) if end is not None else None
    result = []
    for step in steps:
        instant = step.instant
        if lower is not None and instant < lower:
            continue
        if upper is not None and instant > upper:
            continue
        result.append(step)
    return result


def all_artifacts(steps: Iterable[Step]) -> set[str]:
    return {artifact for step in steps for artifact in step.change}


def all_actors(steps: Iterable[Step]) -> set[str]:
    return {step.actor for step in steps}
