"""
Entity types for toolpath documents.

A Step is one attributed change, a Path is a DAG of Steps anchored to a
base context, and a Graph is a collection of Paths. Each type owns its
nested identity and meta structures and converts to and from the JSON
wire shape with to_dict()/from_dict().

Values are frozen: corrections happen by building new Steps, and every
builder returns a new instance. Unrecognised keys are captured in an
``extra`` bag and written back verbatim, so extension namespaces survive
a parse/serialize round trip.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Union

from ..errors import ParseError, SchemaError

ACTOR_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]*:.+$")

TOOLPATH_URI_PREFIX = "toolpath:"


# -----------------------------------------------------------------------------
# Field readers (schema checks with a location for error messages)
# -----------------------------------------------------------------------------


def _obj(value: Any, loc: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError("expected an object", location=loc)
    return value


def _req_str(data: dict[str, Any], key: str, loc: str) -> str:
    if key not in data:
        raise SchemaError(f"missing required field {key!r}", location=loc)
    value = data[key]
    if not isinstance(value, str):
        raise SchemaError(f"field {key!r} must be a string", location=loc)
    return value


def _opt_str(data: dict[str, Any], key: str, loc: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise SchemaError(f"field {key!r} must be a string", location=loc)
    return value


def _list(data: dict[str, Any], key: str, loc: str) -> list[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise SchemaError(f"field {key!r} must be an array", location=loc)
    return value


def reject_constant(name: str) -> Any:
    """json.loads hook: NaN and Infinity are not JSON."""
    raise ParseError(f"invalid JSON: {name} is not a JSON number")


def _extra(data: dict[str, Any], known: Iterable[str]) -> dict[str, Any]:
    known_keys = set(known)
    return {k: v for k, v in data.items() if k not in known_keys}


def check_actor(actor: str, loc: str = "") -> str:
    """Validate an actor string of the form ``type:name``."""
    if not ACTOR_PATTERN.match(actor):
        raise SchemaError(f"actor {actor!r} does not match 'type:name'", location=loc)
    return actor


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Naive timestamps are read as UTC.

    Raises:
        ValueError: if the string is not ISO-8601
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_instant(value: datetime | str) -> str:
    """Render a datetime the way toolpath documents spell timestamps."""
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _check_timestamp(value: str, loc: str) -> str:
    try:
        parse_instant(value)
    except ValueError:
        raise SchemaError(f"timestamp {value!r} is not ISO-8601", location=loc) from None
    return value


# -----------------------------------------------------------------------------
# Shared meta structures
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Ref:
    """Typed link to another resource (issue, related step, path relation)."""

    rel: str
    href: str
    extra: dict[str, Any] = field(default_factory=dict)

    def key(self) -> tuple[str, str]:
        return (self.rel, self.href)

    def to_dict(self) -> dict[str, Any]:
        return {"rel": self.rel, "href": self.href, **self.extra}

    @classmethod
    def from_dict(cls, data: Any, loc: str = "ref") -> Ref:
        data = _obj(data, loc)
        return cls(
            rel=_req_str(data, "rel", loc),
            href=_req_str(data, "href", loc),
            extra=_extra(data, ("rel", "href")),
        )


@dataclass(frozen=True)
class Identity:
    """External identity of an actor (email, GitHub handle, ...)."""

    system: str
    id: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"system": self.system, "id": self.id, **self.extra}

    @classmethod
    def from_dict(cls, data: Any, loc: str = "identity") -> Identity:
        data = _obj(data, loc)
        return cls(
            system=_req_str(data, "system", loc),
            id=_req_str(data, "id", loc),
            extra=_extra(data, ("system", "id")),
        )


@dataclass(frozen=True)
class Key:
    """
    Key reference in an actor directory.

    ``fingerprint`` is what signatures point at; ``public`` carries the
    verifying key material in the encoding its ``type`` expects.
    """

    type: str
    fingerprint: str
    href: str | None = None
    public: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "fingerprint": self.fingerprint}
        if self.href is not None:
            result["href"] = self.href
        if self.public is not None:
            result["public"] = self.public
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "key") -> Key:
        data = _obj(data, loc)
        return cls(
            type=_req_str(data, "type", loc),
            fingerprint=_req_str(data, "fingerprint", loc),
            href=_opt_str(data, "href", loc),
            public=_opt_str(data, "public", loc),
            extra=_extra(data, ("type", "fingerprint", "href", "public")),
        )


@dataclass(frozen=True)
class ActorDefinition:
    """Directory entry for an actor string."""

    name: str | None = None
    provider: str | None = None
    model: str | None = None
    identities: tuple[Identity, ...] = ()
    keys: tuple[Key, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def key_for(self, fingerprint: str) -> Key | None:
        for key in self.keys:
            if key.fingerprint == fingerprint:
                return key
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.name is not None:
            result["name"] = self.name
        if self.provider is not None:
            result["provider"] = self.provider
        if self.model is not None:
            result["model"] = self.model
        if self.identities:
            result["identities"] = [i.to_dict() for i in self.identities]
        if self.keys:
            result["keys"] = [k.to_dict() for k in self.keys]
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "actor") -> ActorDefinition:
        data = _obj(data, loc)
        return cls(
            name=_opt_str(data, "name", loc),
            provider=_opt_str(data, "provider", loc),
            model=_opt_str(data, "model", loc),
            identities=tuple(
                Identity.from_dict(item, f"{loc}.identities[{i}]")
                for i, item in enumerate(_list(data, "identities", loc))
            ),
            keys=tuple(
                Key.from_dict(item, f"{loc}.keys[{i}]")
                for i, item in enumerate(_list(data, "keys", loc))
            ),
            extra=_extra(data, ("name", "provider", "model", "identities", "keys")),
        )


@dataclass(frozen=True)
class Signature:
    """A detached signature over one canonical sub-object of a Step or Path."""

    signer: str  # actor string, resolved against meta.actors
    key: str  # fingerprint of the signing key
    scope: str  # "author" | "reviewer"
    sig: str  # base64 signature bytes
    timestamp: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "signer": self.signer,
            "key": self.key,
            "scope": self.scope,
            "sig": self.sig,
        }
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "signature") -> Signature:
        data = _obj(data, loc)
        return cls(
            signer=_req_str(data, "signer", loc),
            key=_req_str(data, "key", loc),
            scope=_req_str(data, "scope", loc),
            sig=_req_str(data, "sig", loc),
            timestamp=_opt_str(data, "timestamp", loc),
            extra=_extra(data, ("signer", "key", "scope", "sig", "timestamp")),
        )


@dataclass(frozen=True)
class VcsSource:
    """Revision a Step was derived from (e.g. a git commit)."""

    type: str
    revision: str
    change_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "revision": self.revision}
        if self.change_id is not None:
            result["change_id"] = self.change_id
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "source") -> VcsSource:
        data = _obj(data, loc)
        return cls(
            type=_req_str(data, "type", loc),
            revision=_req_str(data, "revision", loc),
            change_id=_opt_str(data, "change_id", loc),
            extra=_extra(data, ("type", "revision", "change_id")),
        )


def _refs_from(data: dict[str, Any], loc: str) -> tuple[Ref, ...]:
    return tuple(Ref.from_dict(item, f"{loc}.refs[{i}]") for i, item in enumerate(_list(data, "refs", loc)))


def _actors_from(data: dict[str, Any], loc: str) -> dict[str, ActorDefinition] | None:
    if "actors" not in data or data["actors"] is None:
        return None
    actors = _obj(data["actors"], f"{loc}.actors")
    return {name: ActorDefinition.from_dict(value, f"{loc}.actors.{name}") for name, value in actors.items()}


def _signatures_from(data: dict[str, Any], loc: str) -> tuple[Signature, ...]:
    return tuple(
        Signature.from_dict(item, f"{loc}.signatures[{i}]")
        for i, item in enumerate(_list(data, "signatures", loc))
    )


def _common_meta_dict(
    refs: tuple[Ref, ...],
    actors: dict[str, ActorDefinition] | None,
    signatures: tuple[Signature, ...],
) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if refs:
        result["refs"] = [r.to_dict() for r in refs]
    if actors is not None:
        result["actors"] = {name: actor.to_dict() for name, actor in actors.items()}
    if signatures:
        result["signatures"] = [s.to_dict() for s in signatures]
    return result


def add_refs(existing: tuple[Ref, ...], new_refs: Iterable[Ref]) -> tuple[Ref, ...]:
    """Append refs with set semantics on (rel, href)."""
    seen = {r.key() for r in existing}
    result = list(existing)
    for ref in new_refs:
        if ref.key() not in seen:
            seen.add(ref.key())
            result.append(ref)
    return tuple(result)


# -----------------------------------------------------------------------------
# Step
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class StructuralChange:
    """Language-aware description of a change, e.g. ``{"type": "rename_function"}``."""

    type: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, **self.extra}

    @classmethod
    def from_dict(cls, data: Any, loc: str = "structural") -> StructuralChange:
        data = _obj(data, loc)
        return cls(type=_req_str(data, "type", loc), extra=_extra(data, ("type",)))


@dataclass(frozen=True)
class ArtifactChange:
    """One or more perspectives on a modification of a single artifact."""

    raw: str | None = None  # unified diff
    structural: StructuralChange | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.raw is not None:
            result["raw"] = self.raw
        if self.structural is not None:
            result["structural"] = self.structural.to_dict()
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "change") -> ArtifactChange:
        data = _obj(data, loc)
        structural = data.get("structural")
        return cls(
            raw=_opt_str(data, "raw", loc),
            structural=(
                StructuralChange.from_dict(structural, f"{loc}.structural")
                if structural is not None
                else None
            ),
            extra=_extra(data, ("raw", "structural")),
        )


@dataclass(frozen=True)
class StepIdentity:
    id: str
    actor: str
    timestamp: str  # ISO-8601, kept verbatim
    parents: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_actor(self.actor)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id}
        if self.parents:
            result["parents"] = list(self.parents)
        result["actor"] = self.actor
        result["timestamp"] = self.timestamp
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "step") -> StepIdentity:
        data = _obj(data, loc)
        parents = _list(data, "parents", loc)
        for i, parent in enumerate(parents):
            if not isinstance(parent, str):
                raise SchemaError("parent ids must be strings", location=f"{loc}.parents[{i}]")
        return cls(
            id=_req_str(data, "id", loc),
            actor=check_actor(_req_str(data, "actor", loc), loc),
            timestamp=_check_timestamp(_req_str(data, "timestamp", loc), loc),
            parents=tuple(parents),
            extra=_extra(data, ("id", "parents", "actor", "timestamp")),
        )


@dataclass(frozen=True)
class StepMeta:
    intent: str | None = None
    source: VcsSource | None = None
    refs: tuple[Ref, ...] = ()
    actors: dict[str, ActorDefinition] | None = None
    signatures: tuple[Signature, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.intent is not None:
            result["intent"] = self.intent
        if self.source is not None:
            result["source"] = self.source.to_dict()
        result.update(_common_meta_dict(self.refs, self.actors, self.signatures))
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "meta") -> StepMeta:
        data = _obj(data, loc)
        source = data.get("source")
        return cls(
            intent=_opt_str(data, "intent", loc),
            source=VcsSource.from_dict(source, f"{loc}.source") if source is not None else None,
            refs=_refs_from(data, loc),
            actors=_actors_from(data, loc),
            signatures=_signatures_from(data, loc),
            extra=_extra(data, ("intent", "source", "refs", "actors", "signatures")),
        )


@dataclass(frozen=True)
class Step:
    """
    The atomic unit of provenance: one actor, one timestamp, one or more
    artifact changes.

    Build with the fluent helpers::

        step = (
            Step.new("step-001", "human:alex", "2026-01-29T10:00:00Z")
            .with_parent("step-000")
            .with_raw_change("src/main.py", "@@ -1 +1 @@\\n-old\\n+new")
            .with_intent("Fix greeting")
        )
    """

    step: StepIdentity
    change: dict[str, ArtifactChange] = field(default_factory=dict)
    meta: StepMeta | None = None

    def __hash__(self) -> int:
        return hash((self.step.id, self.step.actor, self.step.timestamp, self.step.parents))

    @classmethod
    def new(cls, id: str, actor: str, timestamp: datetime | str) -> Step:
        return cls(step=StepIdentity(id=id, actor=actor, timestamp=format_instant(timestamp)))

    @property
    def id(self) -> str:
        return self.step.id

    @property
    def parents(self) -> tuple[str, ...]:
        return self.step.parents

    @property
    def actor(self) -> str:
        return self.step.actor

    @property
    def timestamp(self) -> str:
        return self.step.timestamp

    @property
    def instant(self) -> datetime:
        return parse_instant(self.step.timestamp)

    @property
    def revision(self) -> str | None:
        if self.meta is None or self.meta.source is None:
            return None
        return self.meta.source.revision or None

    # Builders -----------------------------------------------------------------

    def _with_meta(self, **changes: Any) -> Step:
        return replace(self, meta=replace(self.meta or StepMeta(), **changes))

    def with_parent(self, parent: str) -> Step:
        return replace(self, step=replace(self.step, parents=self.step.parents + (parent,)))

    def with_change(self, artifact: str, change: ArtifactChange) -> Step:
        return replace(self, change={**self.change, artifact: change})

    def with_raw_change(self, artifact: str, raw: str) -> Step:
        return self.with_change(artifact, ArtifactChange(raw=raw))

    def with_structural_change(self, artifact: str, change_type: str, **fields: Any) -> Step:
        return self.with_change(artifact, ArtifactChange(structural=StructuralChange(type=change_type, extra=fields)))

    def with_intent(self, intent: str) -> Step:
        return self._with_meta(intent=intent)

    def with_vcs_source(self, vcs_type: str, revision: str, *, change_id: str | None = None) -> Step:
        return self._with_meta(source=VcsSource(type=vcs_type, revision=revision, change_id=change_id))

    def with_refs(self, refs: Iterable[Ref]) -> Step:
        current = self.meta.refs if self.meta else ()
        merged = add_refs(current, refs)
        if merged == current:
            return self
        return self._with_meta(refs=merged)

    def with_ref(self, rel: str, href: str) -> Step:
        return self.with_refs([Ref(rel=rel, href=href)])

    def with_actor(self, actor: str, definition: ActorDefinition) -> Step:
        actors = dict((self.meta.actors if self.meta else None) or {})
        actors[actor] = definition
        return self._with_meta(actors=actors)

    def with_signature(self, signature: Signature) -> Step:
        current = self.meta.signatures if self.meta else ()
        return self._with_meta(signatures=current + (signature,))

    # Wire format ---------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "step": self.step.to_dict(),
            "change": {artifact: c.to_dict() for artifact, c in self.change.items()},
        }
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "Step") -> Step:
        data = _obj(data, loc)
        if "step" not in data:
            raise SchemaError("missing required field 'step'", location=loc)
        if "change" not in data:
            raise SchemaError("missing required field 'change'", location=loc)
        change = _obj(data["change"], f"{loc}.change")
        meta = data.get("meta")
        return cls(
            step=StepIdentity.from_dict(data["step"], f"{loc}.step"),
            change={
                artifact: ArtifactChange.from_dict(value, f"{loc}.change.{artifact}")
                for artifact, value in change.items()
            },
            meta=StepMeta.from_dict(meta, f"{loc}.meta") if meta is not None else None,
        )


# -----------------------------------------------------------------------------
# Path
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Base:
    """
    Anchor a Path branches from.

    One of: a VCS repository at a ref, a local filesystem location, or a
    step in another Path (``toolpath:<path-id>/<step-id>``).
    """

    uri: str
    ref: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def vcs(cls, uri: str, ref: str) -> Base:
        return cls(uri=uri, ref=ref)

    @classmethod
    def toolpath(cls, path_id: str, step_id: str) -> Base:
        return cls(uri=f"{TOOLPATH_URI_PREFIX}{path_id}/{step_id}")

    @classmethod
    def file(cls, path: str) -> Base:
        return cls(uri=f"file://{path}")

    @property
    def kind(self) -> str:
        if self.uri.startswith(TOOLPATH_URI_PREFIX):
            return "toolpath"
        if self.uri.startswith("file:"):
            return "file"
        return "vcs"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"uri": self.uri}
        if self.ref is not None:
            result["ref"] = self.ref
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "base") -> Base:
        data = _obj(data, loc)
        return cls(
            uri=_req_str(data, "uri", loc),
            ref=_opt_str(data, "ref", loc),
            extra=_extra(data, ("uri", "ref")),
        )


@dataclass(frozen=True)
class PathIdentity:
    id: str
    head: str
    base: Base | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id}
        if self.base is not None:
            result["base"] = self.base.to_dict()
        result["head"] = self.head
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "path") -> PathIdentity:
        data = _obj(data, loc)
        base = data.get("base")
        return cls(
            id=_req_str(data, "id", loc),
            head=_req_str(data, "head", loc),
            base=Base.from_dict(base, f"{loc}.base") if base is not None else None,
            extra=_extra(data, ("id", "base", "head")),
        )


@dataclass(frozen=True)
class PathMeta:
    title: str | None = None
    source: str | None = None
    intent: str | None = None
    refs: tuple[Ref, ...] = ()
    actors: dict[str, ActorDefinition] | None = None
    signatures: tuple[Signature, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.title is not None:
            result["title"] = self.title
        if self.source is not None:
            result["source"] = self.source
        if self.intent is not None:
            result["intent"] = self.intent
        result.update(_common_meta_dict(self.refs, self.actors, self.signatures))
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "meta") -> PathMeta:
        data = _obj(data, loc)
        return cls(
            title=_opt_str(data, "title", loc),
            source=_opt_str(data, "source", loc),
            intent=_opt_str(data, "intent", loc),
            refs=_refs_from(data, loc),
            actors=_actors_from(data, loc),
            signatures=_signatures_from(data, loc),
            extra=_extra(data, ("title", "source", "intent", "refs", "actors", "signatures")),
        )


@dataclass(frozen=True)
class Path:
    """
    A DAG of Steps, e.g. one pull request.

    ``path.head`` names the tip of the active branch. Steps not on the
    ancestry of head are dead ends: kept for provenance, but they did not
    contribute to the result.
    """

    path: PathIdentity
    steps: tuple[Step, ...] = ()
    meta: PathMeta | None = None

    @classmethod
    def new(
        cls,
        id: str,
        base: Base | None,
        head: str,
        steps: Iterable[Step] = (),
    ) -> Path:
        return cls(path=PathIdentity(id=id, head=head, base=base), steps=tuple(steps))

    @property
    def id(self) -> str:
        return self.path.id

    @property
    def head(self) -> str:
        return self.path.head

    @property
    def base(self) -> Base | None:
        return self.path.base

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]

    def _with_meta(self, **changes: Any) -> Path:
        return replace(self, meta=replace(self.meta or PathMeta(), **changes))

    def with_steps(self, steps: Iterable[Step]) -> Path:
        return replace(self, steps=tuple(steps))

    def with_title(self, title: str) -> Path:
        return self._with_meta(title=title)

    def with_refs(self, refs: Iterable[Ref]) -> Path:
        current = self.meta.refs if self.meta else ()
        merged = add_refs(current, refs)
        if merged == current:
            return self
        return self._with_meta(refs=merged)

    def with_actor(self, actor: str, definition: ActorDefinition) -> Path:
        actors = dict((self.meta.actors if self.meta else None) or {})
        actors[actor] = definition
        return self._with_meta(actors=actors)

    def with_signature(self, signature: Signature) -> Path:
        current = self.meta.signatures if self.meta else ()
        return self._with_meta(signatures=current + (signature,))

    def with_extension(self, key: str, value: Any) -> Path:
        """Store host bookkeeping under ``meta.<key>``; the core never reads it."""
        current = self.meta.extra if self.meta else {}
        return self._with_meta(extra={**current, key: value})

    def without_extension(self, key: str) -> tuple[Path, Any]:
        """
        Split ``meta.<key>`` off the Path.

        Returns the Path without the key (meta dropped if nothing else is
        left in it) and the removed value, or None if it was absent.
        """
        if self.meta is None or key not in self.meta.extra:
            return self, None
        extra = dict(self.meta.extra)
        value = extra.pop(key)
        meta = replace(self.meta, extra=extra)
        return replace(self, meta=None if meta == PathMeta() else meta), value

    def load_jsonl(self, text: str) -> Path:
        """Return a copy with steps appended from JSONL (one Step per line)."""
        steps = list(self.steps)
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line, parse_constant=reject_constant)
            except json.JSONDecodeError as exc:
                raise ParseError(f"line {lineno}: {exc.msg}") from exc
            steps.append(Step.from_dict(data, f"line {lineno}"))
        return self.with_steps(steps)

    def steps_to_jsonl(self) -> str:
        return "".join(
            json.dumps(step.to_dict(), separators=(",", ":"), ensure_ascii=False, allow_nan=False) + "\n"
            for step in self.steps
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "path": self.path.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "Path") -> Path:
        data = _obj(data, loc)
        if "path" not in data:
            raise SchemaError("missing required field 'path'", location=loc)
        if "steps" not in data:
            raise SchemaError("missing required field 'steps'", location=loc)
        meta = data.get("meta")
        return cls(
            path=PathIdentity.from_dict(data["path"], f"{loc}.path"),
            steps=tuple(
                Step.from_dict(item, f"{loc}.steps[{i}]")
                for i, item in enumerate(_list(data, "steps", loc))
            ),
            meta=PathMeta.from_dict(meta, f"{loc}.meta") if meta is not None else None,
        )


# -----------------------------------------------------------------------------
# Graph
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PathRef:
    """Placeholder for a Path stored elsewhere (``{"$ref": url}``)."""

    ref: str

    def to_dict(self) -> dict[str, Any]:
        return {"$ref": self.ref}

    @classmethod
    def from_dict(cls, data: Any, loc: str = "$ref") -> PathRef:
        data = _obj(data, loc)
        return cls(ref=_req_str(data, "$ref", loc))


PathOrRef = Union[Path, PathRef]


@dataclass(frozen=True)
class GraphIdentity:
    id: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.extra}

    @classmethod
    def from_dict(cls, data: Any, loc: str = "graph") -> GraphIdentity:
        data = _obj(data, loc)
        return cls(id=_req_str(data, "id", loc), extra=_extra(data, ("id",)))


@dataclass(frozen=True)
class GraphMeta:
    title: str | None = None
    intent: str | None = None
    refs: tuple[Ref, ...] = ()
    actors: dict[str, ActorDefinition] | None = None
    signatures: tuple[Signature, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.title is not None:
            result["title"] = self.title
        if self.intent is not None:
            result["intent"] = self.intent
        result.update(_common_meta_dict(self.refs, self.actors, self.signatures))
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "meta") -> GraphMeta:
        data = _obj(data, loc)
        return cls(
            title=_opt_str(data, "title", loc),
            intent=_opt_str(data, "intent", loc),
            refs=_refs_from(data, loc),
            actors=_actors_from(data, loc),
            signatures=_signatures_from(data, loc),
            extra=_extra(data, ("title", "intent", "refs", "actors", "signatures")),
        )


@dataclass(frozen=True)
class Graph:
    """A collection of related Paths, e.g. all the PRs in a release."""

    graph: GraphIdentity
    paths: tuple[PathOrRef, ...] = ()
    meta: GraphMeta | None = None

    @classmethod
    def new(cls, id: str, paths: Iterable[PathOrRef] = (), *, title: str | None = None) -> Graph:
        meta = GraphMeta(title=title) if title is not None else None
        return cls(graph=GraphIdentity(id=id), paths=tuple(paths), meta=meta)

    @property
    def id(self) -> str:
        return self.graph.id

    @property
    def inline_paths(self) -> list[Path]:
        return [p for p in self.paths if isinstance(p, Path)]

    def with_paths(self, paths: Iterable[PathOrRef]) -> Graph:
        return replace(self, paths=tuple(paths))

    def with_refs(self, refs: Iterable[Ref]) -> Graph:
        current = self.meta.refs if self.meta else ()
        merged = add_refs(current, refs)
        if merged == current:
            return self
        return replace(self, meta=replace(self.meta or GraphMeta(), refs=merged))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "graph": self.graph.to_dict(),
            "paths": [p.to_dict() for p in self.paths],
        }
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Any, loc: str = "Graph") -> Graph:
        data = _obj(data, loc)
        if "graph" not in data:
            raise SchemaError("missing required field 'graph'", location=loc)
        if "paths" not in data:
            raise SchemaError("missing required field 'paths'", location=loc)
        entries: list[PathOrRef] = []
        for i, item in enumerate(_list(data, "paths", loc)):
            item_loc = f"{loc}.paths[{i}]"
            item = _obj(item, item_loc)
            if "$ref" in item:
                entries.append(PathRef.from_dict(item, item_loc))
            else:
                entries.append(Path.from_dict(item, item_loc))
        meta = data.get("meta")
        return cls(
            graph=GraphIdentity.from_dict(data["graph"], f"{loc}.graph"),
            paths=tuple(entries),
            meta=GraphMeta.from_dict(meta, f"{loc}.meta") if meta is not None else None,
        )
