"""Validate command - parse a document and check model invariants."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from ..document import Document, DocumentKind, Path, check_document
from ..errors import ToolpathError
from ..query import all_actors, all_artifacts, dead_ends
from ._io import load_document


def _path_summary(path: Path) -> dict[str, Any]:
    return {
        "id": path.id,
        "head": path.head,
        "steps": len(path.steps),
        "dead_ends": sorted(s.id for s in dead_ends(path.steps, path.head)),
        "actors": sorted(all_actors(path.steps)),
        "artifacts": sorted(all_artifacts(path.steps)),
    }


def _summaries(document: Document) -> list[dict[str, Any]]:
    if document.kind is DocumentKind.PATH:
        return [_path_summary(document.as_path())]
    if document.kind is DocumentKind.GRAPH:
        return [_path_summary(p) for p in document.as_graph().inline_paths]
    return []


def run_validate(source: str, *, output_json: bool = False) -> int:
    console = Console()
    err = Console(stderr=True)

    try:
        document = load_document(source)
        check_document(document)
    except OSError as exc:
        err.print(f"Cannot read {source}: {exc}", style="bold red")
        return 1
    except ToolpathError as exc:
        err.print(f"Invalid: {exc}", style="bold red")
        return 1

    summaries = _summaries(document)
    if output_json:
        payload = {"kind": document.kind.value, "id": document.id, "paths": summaries}
        console.print_json(json.dumps(payload))
        return 0

    err.print(f"[green]OK[/] {document.describe()}")
    if not summaries:
        return 0

    table = Table(title=f"{document.kind.value} {document.id}")
    table.add_column("path", style="cyan", no_wrap=True)
    table.add_column("head")
    table.add_column("steps", justify="right")
    table.add_column("dead ends", justify="right")
    table.add_column("actors", style="magenta")
    for s in summaries:
        table.add_row(
            s["id"],
            s["head"],
            str(s["steps"]),
            str(len(s["dead_ends"])),
            ", ".join(s["actors"]),
        )
    console.print(table)
    return 0
