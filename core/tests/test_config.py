"""Tests for EngineConfig loading."""

import json
from pathlib import Path

import pytest

from netention.config import EngineConfig, get_config_file, get_netention_config


@pytest.fixture
def netention_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("NETENTION_HOME", str(tmp_path))
    return tmp_path


class TestDefaults:
    def test_defaults(self):
        config = EngineConfig()

        assert config.max_concurrent == 10
        assert config.max_retries == 3
        assert config.retry_base_delay == 1.0
        assert config.root_id == "root"
        assert config.control_note_id == "ui-status"
        assert config.store == "memory"

    def test_missing_file_means_defaults(self, netention_home: Path):
        assert get_netention_config() == {}
        assert EngineConfig.load() == EngineConfig()


class TestConfigFile:
    def test_engine_section(self, netention_home: Path):
        get_config_file().write_text(
            json.dumps({"engine": {"max_concurrent": 4, "store": "sqlite", "theme": "dark"}})
        )

        config = EngineConfig.load()

        assert config.max_concurrent == 4
        assert config.store == "sqlite"
        assert config.extra == {"theme": "dark"}

    def test_overrides_win_unless_none(self, netention_home: Path):
        get_config_file().write_text(json.dumps({"engine": {"max_concurrent": 4}}))

        assert EngineConfig.load(max_concurrent=2).max_concurrent == 2
        assert EngineConfig.load(max_concurrent=None).max_concurrent == 4

    def test_invalid_json_is_ignored(self, netention_home: Path):
        get_config_file().write_text("{not json")
        assert EngineConfig.load() == EngineConfig()

    def test_non_object_is_ignored(self, netention_home: Path):
        get_config_file().write_text("[1, 2, 3]")
        assert get_netention_config() == {}
