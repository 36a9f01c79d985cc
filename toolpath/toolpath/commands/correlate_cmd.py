"""Correlate command - link Steps and Paths of a Graph that share revisions."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..correlate import CorrelationResult, correlate_graph
from ..errors import ToolpathError
from ._io import load_document, write_document


def _print_summary(result: CorrelationResult, err: Console) -> None:
    if not result.shared_revisions:
        err.print(f"No shared revisions in graph {result.graph.id}", style="dim")
        return

    table = Table(title=f"Shared revisions in {result.graph.id}")
    table.add_column("revision", style="cyan", no_wrap=True)
    table.add_column("steps")
    for revision, locations in sorted(result.shared_revisions.items()):
        table.add_row(revision, ", ".join(f"{loc.path_id}/{loc.step_id}" for loc in locations))
    err.print(table)

    relations = Table(title="Path relations")
    relations.add_column("path", style="cyan")
    relations.add_column("rel", style="magenta")
    relations.add_column("target", style="cyan")
    for relation in result.relations:
        relations.add_row(relation.source, relation.rel, relation.target)
    err.print(relations)
    err.print(f"{result.refs_added} refs added", style="dim")


def run_correlate(
    source: str,
    *,
    pretty: bool = False,
    out: Path | None = None,
    summary: bool = True,
) -> int:
    err = Console(stderr=True)

    try:
        document = load_document(source)
        result = correlate_graph(document.as_graph())
    except OSError as exc:
        err.print(f"Cannot read {source}: {exc}", style="bold red")
        return 1
    except ToolpathError as exc:
        err.print(f"Correlation failed: {exc}", style="bold red")
        return 1

    write_document(result.graph, pretty=pretty, out=out)
    if summary:
        _print_summary(result, err)
    return 0
