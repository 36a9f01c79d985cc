"""
Multi-party signing and verification of Steps and Paths.

Each scope signs a different canonical sub-object:

- step:author     {"change": <Step.change>, "step": <Step.step>}
- path:author     {"path": <Path.path>, "step_ids": [<ids in order>]}
- path:reviewer   {"head": <head>, "path_id": <id>, "reviewed_at": <sig timestamp>}

None of them include ``meta``, so attaching a signature never invalidates
it, and a reviewer can re-sign a Path without re-deriving its steps.
The signed message is the SHA-256 digest of the canonical bytes.

Verification failure is an expected outcome: verify() returns a bool and
verify_all() returns a VerificationReport. SignatureError is raised only
when a value cannot be signed at all.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping

from ..document.types import ActorDefinition, Graph, Path, Signature, Step, format_instant
from ..errors import SignatureError
from .canonical import canonicalize, digest
from .keys import BUNDLED_KEY_TYPES, KeyTypes, SigningKey, VerifyingKey, load_verifying_key

logger = logging.getLogger(__name__)


class SignatureScope(str, Enum):
    STEP_AUTHOR = "step:author"
    PATH_AUTHOR = "path:author"
    PATH_REVIEWER = "path:reviewer"

    @property
    def target(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def wire_scope(self) -> str:
        """Value stored in Signature.scope."""
        return self.value.split(":", 1)[1]

    @classmethod
    def parse(cls, text: str) -> SignatureScope:
        try:
            return cls(text.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"unknown signature scope {text!r} (expected one of: {choices})") from None

    @classmethod
    def for_signature(cls, target: Step | Path, signature: Signature) -> SignatureScope | None:
        kind = "step" if isinstance(target, Step) else "path"
        try:
            return cls(f"{kind}:{signature.scope}")
        except ValueError:
            return None


# -----------------------------------------------------------------------------
# Canonical payloads
# -----------------------------------------------------------------------------


def signable_object(target: Step | Path, scope: SignatureScope, *, timestamp: str | None = None) -> dict[str, Any]:
    """The sub-object a scope covers, before canonicalization."""
    if scope is SignatureScope.STEP_AUTHOR:
        if not isinstance(target, Step):
            raise SignatureError(f"{scope.value} applies to Steps, not {type(target).__name__}")
        return {
            "change": {artifact: change.to_dict() for artifact, change in target.change.items()},
            "step": target.step.to_dict(),
        }

    if not isinstance(target, Path):
        raise SignatureError(f"{scope.value} applies to Paths, not {type(target).__name__}")
    if scope is SignatureScope.PATH_AUTHOR:
        return {"path": target.path.to_dict(), "step_ids": target.step_ids}
    if timestamp is None:
        raise SignatureError("path:reviewer signatures need a review timestamp")
    return {"head": target.head, "path_id": target.id, "reviewed_at": timestamp}


def signing_payload(target: Step | Path, scope: SignatureScope, *, timestamp: str | None = None) -> bytes:
    """Canonical bytes for `scope` over `target`; what external signers hash."""
    return canonicalize(signable_object(target, scope, timestamp=timestamp))


def signing_digest(target: Step | Path, scope: SignatureScope, *, timestamp: str | None = None) -> bytes:
    return digest(signable_object(target, scope, timestamp=timestamp))


# -----------------------------------------------------------------------------
# Signing
# -----------------------------------------------------------------------------


def sign(
    target: Step | Path,
    scope: SignatureScope,
    signing_key: SigningKey,
    signer: str,
    *,
    timestamp: datetime | str | None = None,
) -> Signature:
    """Produce a detached Signature; the caller decides where to attach it."""
    stamp = format_instant(timestamp or datetime.now(timezone.utc))
    message = signing_digest(target, scope, timestamp=stamp)
    sig = signing_key.sign(message)
    return Signature(
        signer=signer,
        key=signing_key.fingerprint(),
        scope=scope.wire_scope,
        sig=base64.b64encode(sig).decode("ascii"),
        timestamp=stamp,
    )


def sign_step(
    step: Step,
    signing_key: SigningKey,
    signer: str,
    *,
    timestamp: datetime | str | None = None,
) -> Step:
    """Return a copy of `step` carrying a step:author signature."""
    signature = sign(step, SignatureScope.STEP_AUTHOR, signing_key, signer, timestamp=timestamp)
    return step.with_signature(signature)


def sign_path(
    path: Path,
    scope: SignatureScope,
    signing_key: SigningKey,
    signer: str,
    *,
    timestamp: datetime | str | None = None,
) -> Path:
    """Return a copy of `path` carrying a path:author or path:reviewer signature."""
    if scope.target != "path":
        raise SignatureError(f"{scope.value} is not a Path scope")
    signature = sign(path, scope, signing_key, signer, timestamp=timestamp)
    return path.with_signature(signature)


# -----------------------------------------------------------------------------
# Verification
# -----------------------------------------------------------------------------


def verify(target: Step | Path, signature: Signature, public_key: VerifyingKey) -> bool:
    """Check one signature against `public_key`. Never raises on bad input."""
    scope = SignatureScope.for_signature(target, signature)
    if scope is None:
        return False
    if scope is SignatureScope.PATH_REVIEWER and signature.timestamp is None:
        return False
    try:
        message = signing_digest(target, scope, timestamp=signature.timestamp)
        raw = base64.b64decode(signature.sig, validate=True)
    except (SignatureError, binascii.Error, ValueError):
        return False
    return public_key.verify(message, raw)


def resolve_key(
    signature: Signature,
    directories: Iterable[Mapping[str, ActorDefinition] | None],
    key_types: KeyTypes = BUNDLED_KEY_TYPES,
) -> VerifyingKey:
    """
    Find the signer's public key in the first directory that lists it.

    Directories are searched in order (Step level before Path level before
    Graph level).

    Raises:
        SignatureError: signer or key not found, or key cannot be loaded
    """
    for directory in directories:
        if not directory or signature.signer not in directory:
            continue
        entry = directory[signature.signer].key_for(signature.key)
        if entry is None:
            raise SignatureError(f"actor {signature.signer!r} has no key {signature.key!r}")
        return load_verifying_key(entry, key_types)
    raise SignatureError(f"signer {signature.signer!r} is not in any actor directory")


@dataclass(frozen=True)
class VerificationFailure:
    scope: SignatureScope
    target_id: str
    reason: str
    signer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "scope": self.scope.value,
            "target_id": self.target_id,
            "reason": self.reason,
        }
        if self.signer is not None:
            result["signer"] = self.signer
        return result


@dataclass
class VerificationReport:
    """Outcome of verify_all(); truthy only if every required scope verified."""

    path_id: str
    required: list[SignatureScope]
    verified: list[tuple[SignatureScope, str, str]] = field(default_factory=list)  # (scope, target_id, signer)
    failures: list[VerificationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def __bool__(self) -> bool:
        return self.ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "path_id": self.path_id,
            "ok": self.ok,
            "required": [s.value for s in self.required],
            "verified": [
                {"scope": scope.value, "target_id": target_id, "signer": signer}
                for scope, target_id, signer in self.verified
            ],
            "failures": [f.to_dict() for f in self.failures],
        }


def _actors(meta: Any) -> Mapping[str, ActorDefinition] | None:
    return meta.actors if meta is not None else None


def _check_target(
    report: VerificationReport,
    scope: SignatureScope,
    target: Step | Path,
    directories: list[Mapping[str, ActorDefinition] | None],
    key_types: KeyTypes,
) -> None:
    signatures = target.meta.signatures if target.meta else ()
    candidates = [s for s in signatures if s.scope == scope.wire_scope]
    if not candidates:
        report.failures.append(VerificationFailure(scope, target.id, "missing signature"))
        return

    last_reason = ""
    last_signer: str | None = None
    for signature in candidates:
        last_signer = signature.signer
        try:
            public_key = resolve_key(signature, directories, key_types)
        except SignatureError as exc:
            last_reason = str(exc)
            continue
        if verify(target, signature, public_key):
            report.verified.append((scope, target.id, signature.signer))
            return
        last_reason = "signature does not verify"
    report.failures.append(VerificationFailure(scope, target.id, last_reason, last_signer))


def verify_all(
    path: Path,
    required_scopes: Iterable[SignatureScope | str],
    *,
    graph: Graph | None = None,
    key_types: KeyTypes = BUNDLED_KEY_TYPES,
) -> VerificationReport:
    """
    Verify every required scope on a Path, failing closed.

    A scope is satisfied when at least one signature of that scope
    resolves to a key in the actor directories and verifies. For
    step:author every step must be satisfied individually, and a Path
    with no steps fails it. Key entries are loaded through `key_types`.
    """
    scopes = [s if isinstance(s, SignatureScope) else SignatureScope.parse(s) for s in required_scopes]
    report = VerificationReport(path_id=path.id, required=scopes)
    path_actors = _actors(path.meta)
    graph_actors = _actors(graph.meta) if graph is not None else None

    for scope in scopes:
        if scope.target == "path":
            _check_target(report, scope, path, [path_actors, graph_actors], key_types)
            continue
        if not path.steps:
            report.failures.append(VerificationFailure(scope, path.id, "no steps to verify"))
            continue
        for step in path.steps:
            _check_target(report, scope, step, [_actors(step.meta), path_actors, graph_actors], key_types)

    logger.debug(
        "verified path %s: %d ok, %d failed",
        path.id,
        len(report.verified),
        len(report.failures),
    )
    return report
