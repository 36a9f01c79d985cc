"""
Tests for multi-party signing and verification.

Keys are generated in-process; nothing touches ssh-agent or the network.
"""

from __future__ import annotations

import base64
import dataclasses
import json

import pytest
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from toolpath.document import ActorDefinition, Graph, GraphMeta, Key, Path, Signature, Step, parse, serialize
from toolpath.errors import SignatureError
from toolpath.signing import (
    Ed25519SigningKey,
    Ed25519VerifyingKey,
    SignatureScope,
    SshSigningKey,
    SshVerifyingKey,
    key_entry,
    load_verifying_key,
    register_key_type,
    resolve_key,
    sign,
    sign_path,
    sign_step,
    signing_payload,
    supported_key_types,
    verify,
    verify_all,
)

SIGNER = "human:alex"


def _with_directory(path: Path, signing_key, signer: str = SIGNER) -> Path:
    return path.with_actor(signer, ActorDefinition(name="Alex", keys=(key_entry(signing_key),)))


def _sign_all_steps(path: Path, signing_key, signer: str = SIGNER) -> Path:
    return path.with_steps(sign_step(step, signing_key, signer) for step in path.steps)


# -----------------------------------------------------------------------------
# Payloads
# -----------------------------------------------------------------------------


def test_step_payload_excludes_meta(branching_path: Path):
    step = branching_path.steps[0]

    payload = json.loads(signing_payload(step, SignatureScope.STEP_AUTHOR))

    assert set(payload) == {"change", "step"}
    assert payload["step"] == {"id": "s1", "actor": "human:alex", "timestamp": "2026-01-29T10:00:00Z"}
    assert signing_payload(step.with_intent("different"), SignatureScope.STEP_AUTHOR) == signing_payload(
        step, SignatureScope.STEP_AUTHOR
    )


def test_path_payloads(branching_path: Path):
    author = json.loads(signing_payload(branching_path, SignatureScope.PATH_AUTHOR))
    reviewer = json.loads(
        signing_payload(branching_path, SignatureScope.PATH_REVIEWER, timestamp="2026-02-01T00:00:00Z")
    )

    assert author["step_ids"] == ["s1", "s2a", "s2", "s3"]
    assert author["path"]["head"] == "s3"
    assert reviewer == {"head": "s3", "path_id": "pr-42", "reviewed_at": "2026-02-01T00:00:00Z"}


def test_payload_is_canonical(branching_path: Path):
    payload = signing_payload(branching_path, SignatureScope.PATH_AUTHOR)

    assert payload.startswith(b'{"path":{')
    assert b" " not in payload.split(b'"step_ids"')[1]


def test_scope_mismatch_cannot_be_signed(branching_path: Path, signing_key: SshSigningKey):
    with pytest.raises(SignatureError, match="applies to Paths"):
        sign(branching_path.steps[0], SignatureScope.PATH_AUTHOR, signing_key, SIGNER)
    with pytest.raises(SignatureError, match="not a Path scope"):
        sign_path(branching_path, SignatureScope.STEP_AUTHOR, signing_key, SIGNER)


def test_scope_parse():
    assert SignatureScope.parse(" Path:Reviewer ") is SignatureScope.PATH_REVIEWER
    assert SignatureScope.PATH_REVIEWER.wire_scope == "reviewer"
    assert SignatureScope.STEP_AUTHOR.target == "step"
    with pytest.raises(ValueError, match="unknown signature scope"):
        SignatureScope.parse("graph:owner")


# -----------------------------------------------------------------------------
# Sign / verify
# -----------------------------------------------------------------------------


def test_sign_step_round_trip(branching_path: Path, signing_key: SshSigningKey):
    step = branching_path.steps[0]

    signed = sign_step(step, signing_key, SIGNER, timestamp="2026-02-01T00:00:00Z")
    signature = signed.meta.signatures[0]

    assert signature.scope == "author"
    assert signature.key == signing_key.fingerprint()
    assert signature.key.startswith("SHA256:")
    assert signature.timestamp == "2026-02-01T00:00:00Z"
    assert verify(signed, signature, signing_key.verifying_key())


def test_changed_content_fails_verification(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_step(branching_path.steps[0], signing_key, SIGNER)
    signature = signed.meta.signatures[0]

    tampered = signed.with_raw_change("src/main.rs", "@@ -1 +1 @@\n-old\n+neW")

    assert not verify(tampered, signature, signing_key.verifying_key())


def test_mutated_signature_byte_fails(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_step(branching_path.steps[0], signing_key, SIGNER)
    signature = signed.meta.signatures[0]
    raw = bytearray(base64.b64decode(signature.sig))
    raw[0] ^= 0x01
    mutated = dataclasses.replace(signature, sig=base64.b64encode(bytes(raw)).decode("ascii"))

    assert not verify(signed, mutated, signing_key.verifying_key())


def test_wrong_key_fails(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_step(branching_path.steps[0], signing_key, SIGNER)

    assert not verify(signed, signed.meta.signatures[0], SshSigningKey.generate().verifying_key())


def test_malformed_signature_is_false_not_error(branching_path: Path, signing_key: SshSigningKey):
    step = branching_path.steps[0]
    bogus = Signature(signer=SIGNER, key=signing_key.fingerprint(), scope="author", sig="not base64!!")
    unknown_scope = dataclasses.replace(bogus, scope="owner")

    assert not verify(step, bogus, signing_key.verifying_key())
    assert not verify(step, unknown_scope, signing_key.verifying_key())


def test_attaching_signature_keeps_path_author_valid(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)
    cosigned = sign_path(signed, SignatureScope.PATH_REVIEWER, SshSigningKey.generate(), "human:sam")

    assert verify(cosigned, cosigned.meta.signatures[0], signing_key.verifying_key())


def test_reviewer_signature_survives_step_edits(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_path(branching_path, SignatureScope.PATH_REVIEWER, signing_key, SIGNER)
    signature = signed.meta.signatures[0]
    edited = signed.with_steps(list(signed.steps[:-1]) + [signed.steps[-1].with_intent("edited")])

    assert verify(edited, signature, signing_key.verifying_key())
    moved_head = dataclasses.replace(edited, path=dataclasses.replace(edited.path, head="s2"))
    assert not verify(moved_head, signature, signing_key.verifying_key())


def test_path_author_detects_removed_step(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)

    trimmed = signed.with_steps(s for s in signed.steps if s.id != "s2a")

    assert not verify(trimmed, signed.meta.signatures[0], signing_key.verifying_key())


def test_unknown_key_injected_into_signed_step_fails(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_step(branching_path.steps[0], signing_key, SIGNER)
    wire = json.loads(serialize(signed))
    wire["Step"]["step"]["injected"] = "evil"

    tampered = parse(json.dumps(wire)).as_step()

    assert tampered.step.extra == {"injected": "evil"}
    assert json.loads(serialize(tampered))["Step"]["step"]["injected"] == "evil"
    assert not verify(tampered, tampered.meta.signatures[0], signing_key.verifying_key())


def test_unknown_key_injected_into_signed_path_fails(branching_path: Path, signing_key: SshSigningKey):
    signed = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)
    wire = json.loads(serialize(signed))
    wire["Path"]["path"]["injected"] = "evil"

    tampered = parse(json.dumps(wire)).as_path()

    assert verify(signed, signed.meta.signatures[0], signing_key.verifying_key())
    assert not verify(tampered, tampered.meta.signatures[0], signing_key.verifying_key())


@pytest.mark.parametrize(
    "private_key",
    [
        pytest.param(lambda: rsa.generate_private_key(public_exponent=65537, key_size=2048), id="rsa"),
        pytest.param(lambda: ec.generate_private_key(ec.SECP256R1()), id="ecdsa"),
    ],
)
def test_ssh_rsa_and_ecdsa_keys(branching_path: Path, private_key):
    signing_key = SshSigningKey(private_key())
    signed = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)

    verifying_key = load_verifying_key(key_entry(signing_key))

    assert verify(signed, signed.meta.signatures[0], verifying_key)


def test_raw_ed25519_keys(branching_path: Path):
    signing_key = Ed25519SigningKey.from_seed(bytes(range(32)))
    entry = key_entry(signing_key)

    assert entry.type == "ed25519"
    verifying_key = load_verifying_key(entry)
    assert isinstance(verifying_key, Ed25519VerifyingKey)
    signed = sign_step(branching_path.steps[1], signing_key, "agent:claude-code")
    assert verify(signed, signed.meta.signatures[0], verifying_key)


def test_ssh_public_key_round_trip(signing_key: SshSigningKey):
    line = signing_key.verifying_key().public_material()

    assert line.startswith("ssh-ed25519 ")
    assert SshVerifyingKey.from_openssh(line).fingerprint() == signing_key.fingerprint()


# -----------------------------------------------------------------------------
# Key loading and resolution
# -----------------------------------------------------------------------------


def test_load_verifying_key_errors(signing_key: SshSigningKey):
    entry = key_entry(signing_key)

    with pytest.raises(SignatureError, match="no verifier registered"):
        load_verifying_key(dataclasses.replace(entry, type="pgp"))
    with pytest.raises(SignatureError, match="no public material"):
        load_verifying_key(dataclasses.replace(entry, public=None))
    with pytest.raises(SignatureError, match="does not match fingerprint"):
        load_verifying_key(dataclasses.replace(entry, fingerprint="SHA256:other"))


def test_register_key_type(signing_key: SshSigningKey):
    verifying_key = signing_key.verifying_key()
    entry = Key(type="test-fixed", fingerprint=signing_key.fingerprint(), public="anything")

    key_types = register_key_type("test-fixed", lambda public: verifying_key)

    assert load_verifying_key(entry, key_types) is verifying_key
    assert "test-fixed" in supported_key_types(key_types)
    assert "test-fixed" not in supported_key_types()
    with pytest.raises(SignatureError, match="no verifier registered"):
        load_verifying_key(entry)


def test_failing_loader_becomes_signature_error(branching_path: Path, signing_key: SshSigningKey):
    def broken(public: str):
        raise RuntimeError("keyring offline")

    key_types = register_key_type("pgp", broken)
    entry = Key(type="pgp", fingerprint=signing_key.fingerprint(), public="armored")
    path = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)
    path = path.with_actor(SIGNER, ActorDefinition(keys=(entry,)))

    with pytest.raises(SignatureError, match="keyring offline"):
        load_verifying_key(entry, key_types)
    report = verify_all(path, [SignatureScope.PATH_AUTHOR], key_types=key_types)
    assert not report
    assert "keyring offline" in report.failures[0].reason


def test_resolve_key_prefers_earlier_directories(signing_key: SshSigningKey):
    other = SshSigningKey.generate()
    signature = Signature(signer=SIGNER, key=signing_key.fingerprint(), scope="author", sig="")
    step_level = {SIGNER: ActorDefinition(keys=(key_entry(signing_key),))}
    path_level = {SIGNER: ActorDefinition(keys=(key_entry(other),))}

    assert resolve_key(signature, [None, step_level, path_level]).fingerprint() == signing_key.fingerprint()
    with pytest.raises(SignatureError, match="has no key"):
        resolve_key(signature, [path_level, step_level])
    with pytest.raises(SignatureError, match="not in any actor directory"):
        resolve_key(signature, [{}, None])


# -----------------------------------------------------------------------------
# verify_all
# -----------------------------------------------------------------------------


def test_verify_all_passes(branching_path: Path, signing_key: SshSigningKey):
    path = _with_directory(_sign_all_steps(branching_path, signing_key), signing_key)
    path = sign_path(path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)

    report = verify_all(path, [SignatureScope.STEP_AUTHOR, "path:author"])

    assert report
    assert report.ok
    assert len(report.verified) == 5
    assert report.to_dict()["ok"] is True


def test_verify_all_missing_scope_fails_closed(branching_path: Path, signing_key: SshSigningKey):
    path = _with_directory(_sign_all_steps(branching_path, signing_key), signing_key)

    report = verify_all(path, [SignatureScope.STEP_AUTHOR, SignatureScope.PATH_REVIEWER])

    assert not report
    assert [(f.scope, f.reason) for f in report.failures] == [(SignatureScope.PATH_REVIEWER, "missing signature")]


def test_verify_all_requires_every_step(branching_path: Path, signing_key: SshSigningKey):
    steps = [sign_step(s, signing_key, SIGNER) if s.id != "s2" else s for s in branching_path.steps]
    path = _with_directory(branching_path.with_steps(steps), signing_key)

    report = verify_all(path, [SignatureScope.STEP_AUTHOR])

    assert not report
    assert [f.target_id for f in report.failures] == ["s2"]


def test_verify_all_unresolvable_signer(branching_path: Path, signing_key: SshSigningKey):
    path = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)

    report = verify_all(path, [SignatureScope.PATH_AUTHOR])

    assert not report
    assert "not in any actor directory" in report.failures[0].reason
    assert report.failures[0].signer == SIGNER


def test_verify_all_tampered_content(branching_path: Path, signing_key: SshSigningKey):
    path = _with_directory(_sign_all_steps(branching_path, signing_key), signing_key)
    steps = list(path.steps)
    steps[0] = steps[0].with_raw_change("src/main.rs", "tampered")

    report = verify_all(path.with_steps(steps), [SignatureScope.STEP_AUTHOR])

    assert [(f.target_id, f.reason) for f in report.failures] == [("s1", "signature does not verify")]


def test_verify_all_any_valid_signature_satisfies_scope(branching_path: Path, signing_key: SshSigningKey):
    stranger = SshSigningKey.generate()
    path = sign_path(branching_path, SignatureScope.PATH_AUTHOR, stranger, "human:mallory")
    path = sign_path(path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)

    report = verify_all(_with_directory(path, signing_key), [SignatureScope.PATH_AUTHOR])

    assert report.ok


def test_verify_all_uses_graph_directory(branching_path: Path, signing_key: SshSigningKey):
    path = sign_path(branching_path, SignatureScope.PATH_AUTHOR, signing_key, SIGNER)
    graph = dataclasses.replace(
        Graph.new("g", [path]),
        meta=GraphMeta(actors={SIGNER: ActorDefinition(keys=(key_entry(signing_key),))}),
    )

    assert not verify_all(path, [SignatureScope.PATH_AUTHOR])
    assert verify_all(path, [SignatureScope.PATH_AUTHOR], graph=graph)


def test_verify_all_with_no_required_scopes(branching_path: Path):
    assert verify_all(branching_path, []).ok


def test_step_level_directory_wins(branching_path: Path, signing_key: SshSigningKey):
    other = SshSigningKey.generate()
    step = sign_step(branching_path.steps[0], signing_key, SIGNER)
    step = step.with_actor(SIGNER, ActorDefinition(keys=(key_entry(signing_key),)))
    path = _with_directory(branching_path.with_steps([step]), other)
    path = dataclasses.replace(path, path=dataclasses.replace(path.path, head="s1"))

    assert verify_all(path, [SignatureScope.STEP_AUTHOR]).ok


def test_unsigned_step_is_not_signed_by_accident():
    step = Step.new("s1", "human:alex", "2026-01-29T10:00:00Z")

    report = verify_all(Path.new("p", None, "s1", [step]), ["step:author"])

    assert report.failures[0].reason == "missing signature"


def test_verify_all_empty_path_fails_step_scope():
    report = verify_all(Path.new("p", None, "none"), ["step:author"])

    assert not report
    assert [(f.target_id, f.reason) for f in report.failures] == [("p", "no steps to verify")]
