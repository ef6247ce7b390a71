from __future__ import annotations

import os
import unittest
from unittest.mock import patch

from raindrop_sync.adapters.raindrop.models import SyncSettings
from raindrop_sync.config import DEFAULT_API_URL, RaindropConfig, load_config


def _env(**values: str) -> dict[str, str]:
    return {"PATH": os.environ.get("PATH", ""), **values}


class TestLoadConfig(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, _env(), clear=True):
            cfg = load_config()

        assert cfg.raindrop.api_url == DEFAULT_API_URL
        assert cfg.raindrop.api_token == ""
        assert cfg.raindrop.mode == "collection"
        assert cfg.raindrop.target_folder == "Raindrop"
        assert cfg.raindrop.sync_interval_minutes == 1440
        assert not cfg.raindrop.auto_sync_enabled
        assert cfg.runtime.log_level == "INFO"

    def test_environment_values(self):
        env = _env(
            RAINDROP_API_TOKEN=" abc123 ",
            RAINDROP_API_URL="https://raindrop.example/rest/v1/",
            RAINDROP_SYNC_MODE="TAG",
            RAINDROP_SYNC_VALUE=" work, urgent ",
            RAINDROP_TARGET_FOLDER="Imported",
            RAINDROP_FLATTEN="yes",
            RAINDROP_SYNC_INTERVAL_MINUTES="30",
            BOOKMARKS_DB_PATH="/tmp/b.db",
            LOG_LEVEL="debug",
        )
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.raindrop.api_token == "abc123"
        assert cfg.raindrop.api_url == "https://raindrop.example/rest/v1"
        assert cfg.raindrop.mode == "tag"
        assert cfg.raindrop.config_value == "work, urgent"
        assert cfg.raindrop.target_folder == "Imported"
        assert cfg.raindrop.flatten is True
        assert cfg.raindrop.auto_sync_enabled
        assert cfg.runtime.db_path == "/tmp/b.db"
        assert cfg.runtime.log_level == "DEBUG"

    def test_overrides_win_over_environment(self):
        with patch.dict(os.environ, _env(LOG_LEVEL="WARNING"), clear=True):
            cfg = load_config(runtime={"log_level": "error", "db_path": "/tmp/x.db"})

        assert cfg.runtime.log_level == "ERROR"
        assert cfg.runtime.db_path == "/tmp/x.db"

    def test_zero_interval_disables_schedule(self):
        env = _env(RAINDROP_API_TOKEN="abc", RAINDROP_SYNC_INTERVAL_MINUTES="0")
        with patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.raindrop.sync_interval_minutes == 0
        assert not cfg.raindrop.auto_sync_enabled

    def test_invalid_values_raise_runtime_error(self):
        cases = [
            {"RAINDROP_SYNC_MODE": "bookmarks"},
            {"RAINDROP_SYNC_INTERVAL_MINUTES": "soon"},
            {"RAINDROP_API_URL": "ftp://raindrop.example"},
            {"RAINDROP_API_TOKEN": "has space"},
            {"LOG_LEVEL": "loud"},
        ]
        for values in cases:
            with self.subTest(values=values), patch.dict(os.environ, _env(**values), clear=True):
                with self.assertRaises(RuntimeError) as ctx:
                    load_config()
                assert "Configuration validation failed" in str(ctx.exception)


class TestSyncSettingsFromConfig(unittest.TestCase):
    def test_config_values_are_copied(self):
        cfg = RaindropConfig(
            api_token="abc", mode="tag", config_value="a, ,b", target_folder="T", flatten=True
        )

        settings = SyncSettings.from_config(cfg)

        assert settings.token == "abc"
        assert settings.mode == "tag"
        assert settings.config_values == ["a", "b"]
        assert settings.target_folder_name == "T"
        assert settings.flatten is True

    def test_overrides_replace_only_given_fields(self):
        cfg = RaindropConfig(api_token="abc", mode="collection", config_value="Work")

        settings = SyncSettings.from_config(cfg, mode="ALL", config_value=None, flatten=None)

        assert settings.mode == "all"
        assert settings.config_value == "Work"
        assert settings.flatten is False
        assert settings.queries()[0].mode == "all"
