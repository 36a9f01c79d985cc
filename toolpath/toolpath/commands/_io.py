"""Reading and writing documents for CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from ..document import Content, Document, DocumentKind, parse, serialize
from ..document import Path as PathDoc
from ..errors import SchemaError

STDIN = "-"


def read_source(source: str) -> bytes:
    if source == STDIN:
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def load_document(source: str) -> Document:
    """
    Parse the document at `source` (a file path, or ``-`` for stdin).

    Raises:
        OSError: the file cannot be read
        ParseError, SchemaError: the bytes are not a toolpath document
    """
    return parse(read_source(source))


def write_document(document: Document | Content, *, pretty: bool = False, out: Path | None = None) -> None:
    data = serialize(document, pretty=pretty) + b"\n"
    if out is None:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)


def select_path(document: Document, path_id: str | None = None) -> PathDoc:
    """
    The Path a path-level command operates on.

    A Path document is used as-is. A Graph must contain the requested
    inline Path, or exactly one inline Path when `path_id` is omitted.

    Raises:
        SchemaError: no single Path can be selected
    """
    if document.kind is DocumentKind.PATH:
        path = document.as_path()
        if path_id is not None and path.id != path_id:
            raise SchemaError(f"document is path {path.id!r}, not {path_id!r}")
        return path
    if document.kind is DocumentKind.STEP:
        raise SchemaError(f"expected a Path or Graph document, got {document.describe()}")

    paths = document.as_graph().inline_paths
    if path_id is not None:
        for path in paths:
            if path.id == path_id:
                return path
        raise SchemaError(f"graph {document.id!r} has no inline path {path_id!r}")
    if len(paths) != 1:
        ids = ", ".join(p.id for p in paths) or "none"
        raise SchemaError(f"graph {document.id!r} has {len(paths)} inline paths ({ids}); pass --path-id")
    return paths[0]
