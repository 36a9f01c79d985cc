"""
toolpath - verifiable provenance for changes to artifacts.

A provenance record is a DAG of atomic Steps (who changed what, and why)
grouped into Paths and Graphs. This package provides:

- document: the Step/Path/Graph model, parse() and serialize()
- query: ancestry, dead ends and filters over a Path's steps
- signing: canonical JSON and multi-party sign/verify
- correlate: cross-path linking of steps that share a revision
- merge: combining documents into one Graph

All of it is pure and in-memory; I/O belongs to the host.
"""

__version__ = "0.1.0"

from .correlate import correlate, correlate_graph, revision_index
from .document import Document, DocumentKind, Graph, Path, Step, parse, serialize
from .merge import merge
from .query import (
    ancestors,
    dead_ends,
    filter_by_actor,
    filter_by_artifact,
    filter_by_time_range,
    is_dead_end,
    step_index,
)
from .signing import SignatureScope, verify_all

__all__ = [
    "__version__",
    # Documents
    "Document",
    "DocumentKind",
    "Graph",
    "Path",
    "Step",
    "parse",
    "serialize",
    # Queries
    "ancestors",
    "dead_ends",
    "is_dead_end",
    "filter_by_actor",
    "filter_by_artifact",
    "filter_by_time_range",
    "step_index",
    # Correlation
    "correlate",
    "correlate_graph",
    "revision_index",
    # Merge
    "merge",
    # Signing
    "SignatureScope",
    "verify_all",
]
