"""Tests for configuration loading and Dalfox binary resolution."""
import json
import logging

import pytest

from foxtab import config


@pytest.fixture
def user_config(tmp_path, monkeypatch):
    """Point the persisted config at a temp directory."""
    monkeypatch.setattr(config, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path / "data" / "config.json")
    monkeypatch.delenv(config.DALFOX_ENV_VAR, raising=False)
    return config.CONFIG_FILE


class TestResolveDalfox:

    def test_env_override_wins(self, user_config, monkeypatch):
        config.save_user_config({"dalfox_path": "/from/config"})
        monkeypatch.setenv(config.DALFOX_ENV_VAR, " /from/env/dalfox ")
        assert config.resolve_dalfox_bin() == "/from/env/dalfox"

    def test_user_config_path(self, user_config):
        config.save_user_config({"dalfox_path": "/from/config"})
        assert config.resolve_dalfox_bin() == "/from/config"

    def test_first_existing_candidate(self, user_config, tmp_path, monkeypatch):
        present = tmp_path / "bin" / "dalfox"
        present.parent.mkdir()
        present.touch()
        monkeypatch.setattr(config, "dalfox_candidates", lambda: [tmp_path / "missing", present])
        assert config.resolve_dalfox_bin() == str(present)

    def test_falls_back_to_command_name(self, user_config, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "dalfox_candidates", lambda: [tmp_path / "missing"])
        assert config.resolve_dalfox_bin() == "dalfox"


class TestUserConfig:

    def test_missing_file(self, user_config):
        assert config.load_user_config() == {}

    def test_save_merges(self, user_config):
        config.save_user_config({"api_port": 9000})
        config.save_user_config({"scan_timeout_minutes": 5})
        assert json.loads(user_config.read_text()) == {"api_port": 9000, "scan_timeout_minutes": 5}

    def test_corrupt_file_ignored(self, user_config, caplog):
        user_config.parent.mkdir(parents=True)
        user_config.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="foxtab.config"):
            assert config.load_user_config() == {}
        assert "Error loading config" in caplog.text

    def test_non_object_ignored(self, user_config):
        user_config.parent.mkdir(parents=True)
        user_config.write_text("[1, 2]")
        assert config.load_user_config() == {}


class TestGetConfig:

    def test_defaults(self, user_config):
        cfg = config.get_config()
        assert cfg.api.host == "127.0.0.1"
        assert cfg.api.port == 8765
        assert cfg.scan.preflight_timeout == 5.0
        assert cfg.scan.scan_timeout_minutes == 30
        assert cfg.scan.strict_trigger is True

    def test_overrides(self, user_config):
        config.save_user_config({
            "api_port": "9001",
            "preflight_timeout": 2,
            "scan_timeout_minutes": 60,
            "strict_trigger": False,
        })
        cfg = config.get_config()
        assert cfg.api.port == 9001
        assert cfg.scan.preflight_timeout == 2.0
        assert cfg.scan.scan_timeout_minutes == 60
        assert cfg.scan.strict_trigger is False

    def test_instances_are_independent(self, user_config):
        a = config.get_config()
        a.api.cors_origins.append("http://evil")
        assert "http://evil" not in config.get_config().api.cors_origins
