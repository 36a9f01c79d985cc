"""Query commands - ancestry, dead ends and filters over one Path."""

from __future__ import annotations

import json
from typing import Collection, Iterable

from rich.console import Console
from rich.table import Table

from ..document import Path, Step
from ..errors import ToolpathError
from ..query import ancestors, dead_ends, filter_by_actor, filter_by_artifact, filter_by_time_range
from ._io import load_document, select_path


def _load_path(source: str, path_id: str | None, err: Console) -> Path | None:
    try:
        return select_path(load_document(source), path_id)
    except OSError as exc:
        err.print(f"Cannot read {source}: {exc}", style="bold red")
    except ToolpathError as exc:
        err.print(str(exc), style="bold red")
    return None


def _in_document_order(path: Path, selected: Collection[Step]) -> list[Step]:
    return [step for step in path.steps if step in selected]


def _print_steps(steps: Iterable[Step], *, title: str, output_json: bool) -> None:
    console = Console()
    steps = list(steps)
    if output_json:
        console.print_json(json.dumps([s.to_dict() for s in steps]))
        return

    table = Table(title=title)
    table.add_column("step", style="cyan", no_wrap=True)
    table.add_column("actor", style="magenta")
    table.add_column("timestamp")
    table.add_column("parents")
    table.add_column("artifacts")
    table.add_column("intent", style="dim")
    for step in steps:
        table.add_row(
            step.id,
            step.actor,
            step.timestamp,
            ", ".join(step.parents),
            ", ".join(sorted(step.change)),
            (step.meta.intent or "") if step.meta else "",
        )
    console.print(table)


def run_ancestors(source: str, step_id: str, *, path_id: str | None = None, output_json: bool = False) -> int:
    err = Console(stderr=True)
    path = _load_path(source, path_id, err)
    if path is None:
        return 1

    found = ancestors(path.steps, step_id)
    if not found:
        err.print(f"Step not found in path {path.id}: {step_id}", style="bold red")
        return 1
    _print_steps(_in_document_order(path, found), title=f"Ancestors of {step_id}", output_json=output_json)
    return 0


def run_dead_ends(source: str, *, path_id: str | None = None, output_json: bool = False) -> int:
    err = Console(stderr=True)
    path = _load_path(source, path_id, err)
    if path is None:
        return 1

    found = dead_ends(path.steps, path.head)
    _print_steps(
        _in_document_order(path, found),
        title=f"Dead ends in {path.id} (head {path.head})",
        output_json=output_json,
    )
    return 0


def run_filter(
    source: str,
    *,
    path_id: str | None = None,
    actor: str | None = None,
    artifact: str | None = None,
    after: str | None = None,
    before: str | None = None,
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    path = _load_path(source, path_id, err)
    if path is None:
        return 1

    steps: list[Step] = list(path.steps)
    if actor:
        steps = filter_by_actor(steps, actor)
    if artifact:
        steps = filter_by_artifact(steps, artifact)
    if after or before:
        try:
            steps = filter_by_time_range(steps, after, before)
        except ValueError as exc:
            err.print(f"Invalid time bound: {exc}", style="bold red")
            return 1

    _print_steps(steps, title=f"{len(steps)} of {len(path.steps)} steps in {path.id}", output_json=output_json)
    return 0
