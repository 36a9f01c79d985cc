"""
Toolpath document model.

- types: Step, Path, Graph and their identity/meta structures
- envelope: externally tagged Document, parse() and serialize()
- validate: model invariant checks (scoped id uniqueness, parent resolution)
"""

from .envelope import Content, Document, DocumentKind, detect_kind, parse, serialize
from .types import (
    ActorDefinition,
    ArtifactChange,
    Base,
    Graph,
    GraphIdentity,
    GraphMeta,
    Identity,
    Key,
    Path,
    PathIdentity,
    PathMeta,
    PathOrRef,
    PathRef,
    Ref,
    Signature,
    Step,
    StepIdentity,
    StepMeta,
    StructuralChange,
    VcsSource,
)
from .validate import check_document, check_graph, check_path, strict_step_index

__all__ = [
    # Envelope
    "Content",
    "Document",
    "DocumentKind",
    "detect_kind",
    "parse",
    "serialize",
    # Entities
    "Step",
    "StepIdentity",
    "StepMeta",
    "ArtifactChange",
    "StructuralChange",
    "Path",
    "PathIdentity",
    "PathMeta",
    "PathOrRef",
    "PathRef",
    "Base",
    "Graph",
    "GraphIdentity",
    "GraphMeta",
    # Meta
    "ActorDefinition",
    "Identity",
    "Key",
    "Ref",
    "Signature",
    "VcsSource",
    # Invariants
    "check_document",
    "check_graph",
    "check_path",
    "strict_step_index",
]
