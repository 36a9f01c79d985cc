"""Merge command - combine Path and Graph documents into one Graph."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from rich.console import Console

from ..errors import ToolpathError
from ..merge import merge
from ._io import load_document, write_document


def run_merge(
    sources: Sequence[str],
    *,
    title: str | None = None,
    pretty: bool = False,
    out: Path | None = None,
) -> int:
    err = Console(stderr=True)

    documents = []
    for source in sources:
        try:
            documents.append(load_document(source))
        except OSError as exc:
            err.print(f"Cannot read {source}: {exc}", style="bold red")
            return 1
        except ToolpathError as exc:
            err.print(f"{source}: {exc}", style="bold red")
            return 1

    try:
        graph = merge(documents, title=title)
    except ToolpathError as exc:
        err.print(f"Merge failed: {exc}", style="bold red")
        return 1

    write_document(graph, pretty=pretty, out=out)
    err.print(f"[green]Merged[/] {len(documents)} documents into graph {graph.id} ({len(graph.paths)} paths)")
    return 0
