"""
Canonicalization and signing.

- canonical: RFC 8785 style canonical JSON bytes and SHA-256 digests
- keys: sign/verify capability layer and key-type registry
- protocol: scope-specific payloads, sign_step/sign_path, verify/verify_all
"""

from .canonical import canonicalize, digest, digest_hex
from .keys import (
    BUNDLED_KEY_TYPES,
    Ed25519SigningKey,
    Ed25519VerifyingKey,
    KeyTypes,
    SigningKey,
    SshSigningKey,
    SshVerifyingKey,
    VerifyingKey,
    key_entry,
    load_verifying_key,
    register_key_type,
    supported_key_types,
)
from .protocol import (
    SignatureScope,
    VerificationFailure,
    VerificationReport,
    resolve_key,
    sign,
    sign_path,
    sign_step,
    signing_payload,
    verify,
    verify_all,
)

__all__ = [
    # Canonical form
    "canonicalize",
    "digest",
    "digest_hex",
    # Keys
    "SigningKey",
    "VerifyingKey",
    "SshSigningKey",
    "SshVerifyingKey",
    "Ed25519SigningKey",
    "Ed25519VerifyingKey",
    "BUNDLED_KEY_TYPES",
    "KeyTypes",
    "key_entry",
    "load_verifying_key",
    "register_key_type",
    "supported_key_types",
    # Protocol
    "SignatureScope",
    "VerificationFailure",
    "VerificationReport",
    "resolve_key",
    "sign",
    "sign_path",
    "sign_step",
    "signing_payload",
    "verify",
    "verify_all",
]
