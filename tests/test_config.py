"""
Tests for the configuration loader.
"""

import json
import textwrap
from pathlib import Path

import pytest

from macsetup.core.config.loader import (
    BASE_CONFIG_FILE,
    DESIRED_CONFIG_FILE,
    ConfigError,
    create_desired_from_base,
    default_base_path,
    default_desired_path,
    load_desired,
    load_document,
)
from macsetup.core.models.config import InstalledSnapshot


class TestDefaultPaths:
    def test_defaults_use_cwd(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert default_desired_path() == tmp_path / DESIRED_CONFIG_FILE
        assert default_base_path() == tmp_path / BASE_CONFIG_FILE

    def test_explicit_directory(self, tmp_path: Path):
        assert default_base_path(tmp_path).parent == tmp_path


class TestLoadDesired:
    def test_load_json(self, write_desired):
        path = write_desired({"formulae": ["git", "jq"], "casks": ["firefox"]})
        desired = load_desired(path)
        assert desired.formulae == ["git", "jq"]
        assert desired.casks == ["firefox"]

    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "desired.yml"
        path.write_text(
            textwrap.dedent("""\
                formulae:
                  - git
                store_apps:
                  - id: 409183694
                    name: Keynote
                git_identity:
                  name: Alice
            """)
        )
        desired = load_desired(path)
        assert desired.formulae == ["git"]
        assert desired.store_apps[0].id == "409183694"
        assert desired.git_identity.name == "Alice"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_desired(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_desired(path)

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("formulae: [git\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_desired(path)

    def test_not_utf8(self, tmp_path: Path):
        path = tmp_path / "latin1.json"
        path.write_bytes(b'{"formulae": ["\xff\xfe"]}')
        with pytest.raises(ConfigError, match="Cannot read"):
            load_desired(path)

    def test_unreadable_path(self, tmp_path: Path):
        path = tmp_path / "dir.json"
        path.mkdir()
        with pytest.raises(ConfigError, match="not found"):
            load_desired(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps(["git"]))
        with pytest.raises(ConfigError, match="Expected a mapping"):
            load_desired(path)

    def test_duplicates_are_config_errors(self, write_desired):
        path = write_desired({"formulae": ["git", "git"]})
        with pytest.raises(ConfigError, match="duplicate"):
            load_desired(path)

    def test_wrong_type(self, write_desired):
        path = write_desired({"formulae": "git"})
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_desired(path)

    def test_load_snapshot_model(self, tmp_path: Path):
        path = tmp_path / BASE_CONFIG_FILE
        path.write_text(json.dumps({"metadata": {"hostname": "mbp"}, "taps": ["a/b"]}))
        snapshot = load_document(path, InstalledSnapshot)
        assert snapshot.metadata.hostname == "mbp"
        assert snapshot.taps == ["a/b"]


class TestCreateDesiredFromBase:
    def test_copies_base(self, tmp_path: Path):
        base = tmp_path / BASE_CONFIG_FILE
        base.write_text(json.dumps({"formulae": ["git"]}))
        desired = tmp_path / DESIRED_CONFIG_FILE

        assert create_desired_from_base(desired, base) is True
        assert desired.read_text() == base.read_text()

    def test_no_base(self, tmp_path: Path):
        desired = tmp_path / DESIRED_CONFIG_FILE
        assert create_desired_from_base(desired, tmp_path / BASE_CONFIG_FILE) is False
        assert not desired.exists()
