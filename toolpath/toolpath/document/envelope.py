"""
Externally tagged document envelope.

On the wire a document is ``{"Step": {...}}``, ``{"Path": {...}}`` or
``{"Graph": {...}}``. The kind is decided once, here, from which
discriminating key the content carries (``paths``, then ``steps``, then
``change``); callers dispatch on Document.kind and never re-derive it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from ..errors import ParseError, SchemaError
from .types import Graph, Path, Step, reject_constant

logger = logging.getLogger(__name__)


class DocumentKind(str, Enum):
    GRAPH = "Graph"
    PATH = "Path"
    STEP = "Step"


# Structural discrimination order; the first discriminating key found wins.
_DISCRIMINATORS: tuple[tuple[DocumentKind, str], ...] = (
    (DocumentKind.GRAPH, "paths"),
    (DocumentKind.PATH, "steps"),
    (DocumentKind.STEP, "change"),
)

_LOADERS = {
    DocumentKind.GRAPH: Graph.from_dict,
    DocumentKind.PATH: Path.from_dict,
    DocumentKind.STEP: Step.from_dict,
}

Content = Union[Step, Path, Graph]


@dataclass(frozen=True)
class Document:
    """A Step, Path or Graph together with its kind."""

    kind: DocumentKind
    value: Content

    @classmethod
    def of(cls, value: Content) -> Document:
        if isinstance(value, Graph):
            return cls(DocumentKind.GRAPH, value)
        if isinstance(value, Path):
            return cls(DocumentKind.PATH, value)
        if isinstance(value, Step):
            return cls(DocumentKind.STEP, value)
        raise TypeError(f"not a toolpath document: {type(value).__name__}")

    @property
    def id(self) -> str:
        return self.value.id

    def as_step(self) -> Step:
        if self.kind is not DocumentKind.STEP:
            raise SchemaError(f"expected a Step document, got {self.kind.value}")
        return self.value  # type: ignore[return-value]

    def as_path(self) -> Path:
        if self.kind is not DocumentKind.PATH:
            raise SchemaError(f"expected a Path document, got {self.kind.value}")
        return self.value  # type: ignore[return-value]

    def as_graph(self) -> Graph:
        if self.kind is not DocumentKind.GRAPH:
            raise SchemaError(f"expected a Graph document, got {self.kind.value}")
        return self.value  # type: ignore[return-value]

    def describe(self) -> str:
        """One-line summary, e.g. ``Path (id: pr-42, 3 steps)``."""
        if self.kind is DocumentKind.GRAPH:
            return f"Graph (id: {self.id}, {len(self.as_graph().paths)} paths)"
        if self.kind is DocumentKind.PATH:
            return f"Path (id: {self.id}, {len(self.as_path().steps)} steps)"
        return f"Step (id: {self.id})"

    def to_dict(self) -> dict[str, Any]:
        return {self.kind.value: self.value.to_dict()}


def detect_kind(content: dict[str, Any]) -> DocumentKind:
    """
    Decide the kind of an untagged document from its structure.

    Raises:
        SchemaError: if no discriminating key is present
    """
    for kind, key in _DISCRIMINATORS:
        if key in content:
            return kind
    raise SchemaError("value is not a Step, Path or Graph (no 'paths', 'steps' or 'change' key)")


def from_dict(data: Any) -> Document:
    """
    Build a Document from a decoded JSON value.

    Accepts the externally tagged envelope or a bare document. A tag that
    disagrees with the structure of its content is a SchemaError.
    """
    if not isinstance(data, dict):
        raise SchemaError("document must be a JSON object")

    tags = [kind for kind in DocumentKind if kind.value in data]
    if len(data) == 1 and tags:
        tag = tags[0]
        content = data[tag.value]
        if not isinstance(content, dict):
            raise SchemaError("expected an object", location=tag.value)
        kind = detect_kind(content)
        if kind is not tag:
            raise SchemaError(
                f"tagged as {tag.value} but structured as {kind.value}",
                location=tag.value,
            )
    else:
        content = data
        kind = detect_kind(content)

    value = _LOADERS[kind](content, kind.value)
    return Document(kind, value)


def parse(data: bytes | str) -> Document:
    """
    Parse a toolpath document from UTF-8 JSON.

    Raises:
        ParseError: malformed bytes or JSON
        SchemaError: well-formed JSON that is not a Step, Path or Graph
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"document is not valid UTF-8: {exc}") from exc
    try:
        decoded = json.loads(data, parse_constant=reject_constant)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc

    document = from_dict(decoded)
    logger.debug("parsed %s", document.describe())
    return document


def serialize(document: Document | Content, pretty: bool = False) -> bytes:
    """
    Serialize a document (or bare Step/Path/Graph) to tagged UTF-8 JSON.

    Raises:
        SchemaError: the document holds a NaN or infinite number
    """
    if not isinstance(document, Document):
        document = Document.of(document)
    try:
        if pretty:
            text = json.dumps(document.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)
        else:
            text = json.dumps(document.to_dict(), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except ValueError as exc:
        raise SchemaError(f"cannot serialize {document.describe()}: {exc}") from exc
    return text.encode("utf-8")
