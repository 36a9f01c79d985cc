"""Combine independent documents into one Graph."""

from __future__ import annotations

import logging
from typing import Iterable

from .document.envelope import Content, Document, DocumentKind
from .document.types import Graph, Path, PathOrRef
from .document.validate import check_unique_path_ids, strict_step_index
from .errors import MergeError

logger = logging.getLogger(__name__)


def collect_paths(documents: Iterable[Document | Content]) -> list[PathOrRef]:
    """
    Gather Graph members from each input.

    Path documents become inline members; Graph documents are flattened
    one level (their ``$ref`` entries are carried through untouched).

    Raises:
        MergeError: a Step document was supplied
    """
    entries: list[PathOrRef] = []
    for position, document in enumerate(documents):
        if not isinstance(document, Document):
            document = Document.of(document)
        if document.kind is DocumentKind.STEP:
            raise MergeError(
                f"input {position} is a Step ({document.id!r}); only Path and Graph documents can be merged"
            )
        if document.kind is DocumentKind.GRAPH:
            entries.extend(document.as_graph().paths)
        else:
            entries.append(document.as_path())
    return entries


def merge(documents: Iterable[Document | Content], title: str | None = None) -> Graph:
    """
    Merge Path and Graph documents into a single Graph.

    Raises:
        MergeError: a Step document was supplied
        DuplicatePathIdError: two inputs share a Path id
        DuplicateStepIdError: an input Path repeats a step id
    """
    entries = collect_paths(documents)
    graph_id = f"graph-merged-{len(entries)}"
    check_unique_path_ids(entries, graph_id)
    for entry in entries:
        if isinstance(entry, Path):
            strict_step_index(entry.steps, entry.id)

    logger.debug("merged %d paths into %s", len(entries), graph_id)
    return Graph.new(graph_id, entries, title=title)
