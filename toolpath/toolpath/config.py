"""
Host configuration for the toolpath CLI.

Read from an optional ``.toolpath.toml``, found by walking up from the
working directory. The core library never reads configuration; only the
CLI does, and its flags override whatever is loaded here.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .signing.protocol import SignatureScope

CONFIG_FILENAME = ".toolpath.toml"

DEFAULT_REQUIRED_SCOPES = (SignatureScope.STEP_AUTHOR,)


@dataclass(frozen=True)
class ToolpathConfig:
    pretty: bool = False
    required_scopes: tuple[SignatureScope, ...] = DEFAULT_REQUIRED_SCOPES
    signer: str | None = None
    key_file: Path | None = None
    source: Path | None = None  # file this config was read from


def _coerce_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def find_config(start: Path) -> Path | None:
    """Find the nearest .toolpath.toml at or above `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        candidate = p / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> ToolpathConfig:
    """
    Load configuration from `path`, or from the nearest config file.

    Missing files yield the defaults.

    Raises:
        ValueError: malformed TOML, a non-boolean output.pretty, or an
            unknown signature scope
    """
    if path is None:
        path = find_config(Path.cwd())
    if path is None or not path.exists():
        return ToolpathConfig()

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"{path}: {exc}") from exc

    output = _coerce_dict(data.get("output"))
    verify = _coerce_dict(data.get("verify"))
    sign = _coerce_dict(data.get("sign"))

    pretty = output.get("pretty", False)
    if not isinstance(pretty, bool):
        raise ValueError(f"{path}: output.pretty must be true or false, got {pretty!r}")

    scopes_raw = verify.get("required_scopes")
    if isinstance(scopes_raw, list):
        required_scopes = tuple(SignatureScope.parse(str(s)) for s in scopes_raw)
    else:
        required_scopes = DEFAULT_REQUIRED_SCOPES

    signer = sign.get("signer")
    key_file = sign.get("key_file")

    return ToolpathConfig(
        pretty=pretty,
        required_scopes=required_scopes,
        signer=str(signer) if isinstance(signer, str) and signer.strip() else None,
        key_file=Path(key_file).expanduser() if isinstance(key_file, str) and key_file.strip() else None,
        source=path,
    )
