"""
Tests for configuration — the Config model and the converge.yml loader.
"""

import textwrap
from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from converge.core.config.loader import (
    ConfigError,
    config_path,
    default_root,
    load_config,
)
from converge.core.models.config import DEFAULT_REFRESH, Config, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1d", timedelta(days=1)),
            ("12h", timedelta(hours=12)),
            ("30m", timedelta(minutes=30)),
            ("45s", timedelta(seconds=45)),
            ("1d 12h", timedelta(days=1, hours=12)),
        ],
    )
    def test_humane_strings(self, text: str, expected: timedelta):
        assert parse_duration(text) == expected

    def test_other_values_pass_through(self):
        assert parse_duration(60) == 60
        assert parse_duration("PT1H") == "PT1H"


class TestConfigModel:
    def test_defaults(self):
        config = Config()
        assert config.git_refresh == DEFAULT_REFRESH
        assert config.package_refresh == timedelta(days=1)
        assert config.max_workers is None
        assert config.data == {}

    def test_seconds(self):
        assert Config(git_refresh=3600).git_refresh == timedelta(hours=1)

    def test_max_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            Config(max_workers=0)

    def test_refresh_for(self):
        config = Config(git_refresh="1h", package_refresh="2h")
        assert config.refresh_for("git") == timedelta(hours=1)
        assert config.refresh_for("package") == timedelta(hours=2)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "converge.yml") == Config()

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "converge.yml"
        path.write_text("")
        assert load_config(path) == Config()

    def test_full_file(self, config_root: Path):
        path = config_path(config_root)
        path.write_text(textwrap.dedent("""\
            git_refresh: 6h
            package_refresh: 2d
            max_workers: 4
            data:
              user: alice
              editor: vim
        """))
        config = load_config(path)
        assert config.git_refresh == timedelta(hours=6)
        assert config.package_refresh == timedelta(days=2)
        assert config.max_workers == 4
        assert config.data["editor"] == "vim"

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "converge.yml"
        path.write_text("git_refresh: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "converge.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_schema_error(self, tmp_path: Path):
        path = tmp_path / "converge.yml"
        path.write_text("max_workers: -1\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)


class TestDefaultRoot:
    def test_env_override(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("CONVERGE_ROOT", str(tmp_path))
        assert default_root() == tmp_path

    def test_app_dir(self, monkeypatch):
        monkeypatch.delenv("CONVERGE_ROOT", raising=False)
        assert default_root().name.lower() == "converge"
