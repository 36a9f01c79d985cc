"""Tests for .toolpath.toml loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from toolpath.config import CONFIG_FILENAME, ToolpathConfig, find_config, load_config
from toolpath.signing import SignatureScope


def test_missing_config_gives_defaults(tmp_path: Path):
    config = load_config(tmp_path / "absent.toml")

    assert config == ToolpathConfig()
    assert config.required_scopes == (SignatureScope.STEP_AUTHOR,)


def test_load_all_sections(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text(
        """
[output]
pretty = true

[verify]
required_scopes = ["step:author", "path:reviewer"]

[sign]
signer = "human:alex"
key_file = "keys/id_ed25519"
""",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.pretty is True
    assert config.required_scopes == (SignatureScope.STEP_AUTHOR, SignatureScope.PATH_REVIEWER)
    assert config.signer == "human:alex"
    assert config.key_file == Path("keys/id_ed25519")
    assert config.source == path


def test_empty_sections_fall_back(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text('[sign]\nsigner = "  "\n', encoding="utf-8")

    config = load_config(path)

    assert config.signer is None
    assert config.pretty is False
    assert config.required_scopes == (SignatureScope.STEP_AUTHOR,)


def test_malformed_toml(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("[output\npretty = ", encoding="utf-8")

    with pytest.raises(ValueError, match=CONFIG_FILENAME):
        load_config(path)


def test_pretty_must_be_boolean(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text('[output]\npretty = "no"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="output.pretty"):
        load_config(path)


def test_unknown_scope(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text('[verify]\nrequired_scopes = ["graph:owner"]\n', encoding="utf-8")

    with pytest.raises(ValueError, match="unknown signature scope"):
        load_config(path)


def test_find_config_walks_up(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_config(nested) == path.resolve()
