"""
Error hierarchy for toolpath documents.

Every error raised by the core derives from ToolpathError so hosts can
catch the whole family at one boundary. Signature failures are the
exception to the rule: they are reported as data (see
signing.protocol.VerificationReport), and SignatureError is only raised
for inputs that cannot be signed at all.
"""

from __future__ import annotations


class ToolpathError(Exception):
    """Base class for all toolpath errors."""


class ParseError(ToolpathError):
    """Input bytes are not well-formed UTF-8 JSON."""


class SchemaError(ToolpathError):
    """A JSON value does not have the shape of a Step, Path or Graph."""

    def __init__(self, message: str, *, location: str = "") -> None:
        self.location = location
        super().__init__(f"{location}: {message}" if location else message)


class InvariantViolation(ToolpathError):
    """A structurally valid document breaks a model invariant."""


class DuplicateStepIdError(InvariantViolation):
    def __init__(self, path_id: str, step_id: str) -> None:
        self.path_id = path_id
        self.step_id = step_id
        super().__init__(f"duplicate step id {step_id!r} in path {path_id!r}")


class CrossPathParentError(InvariantViolation):
    """A parent reference does not resolve inside its own Path."""

    def __init__(self, path_id: str, step_id: str, parent_id: str) -> None:
        self.path_id = path_id
        self.step_id = step_id
        self.parent_id = parent_id
        super().__init__(
            f"step {step_id!r} in path {path_id!r} references parent "
            f"{parent_id!r}, which is not a step of that path"
        )


class DanglingReferenceError(InvariantViolation):
    def __init__(self, path_id: str, field_name: str, target: str) -> None:
        self.path_id = path_id
        self.field_name = field_name
        self.target = target
        super().__init__(f"path {path_id!r}: {field_name} {target!r} does not resolve")


class MergeError(ToolpathError):
    """Documents cannot be combined into one Graph."""


class DuplicatePathIdError(InvariantViolation, MergeError):
    def __init__(self, path_id: str, graph_id: str | None = None) -> None:
        self.path_id = path_id
        self.graph_id = graph_id
        where = f" in graph {graph_id!r}" if graph_id else ""
        super().__init__(f"duplicate path id {path_id!r}{where}")


class SignatureError(ToolpathError):
    """A value cannot be canonicalized, signed, or a key cannot be loaded."""
