"""Tests for local client configuration."""

import json

from initiative_sync.config import (
    DEFAULT_CONFIG,
    get_config_path,
    load_config,
    save_config,
)


class TestConfig:
    def test_defaults_when_missing(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_round_trip(self, tmp_path):
        assert save_config({"log_level": "DEBUG", "add_hidden": False}, tmp_path)
        assert load_config(tmp_path) == {"log_level": "DEBUG", "add_hidden": False}

    def test_missing_keys_filled(self, tmp_path):
        get_config_path(tmp_path).write_text(json.dumps({"log_level": "WARNING"}))
        config = load_config(tmp_path)
        assert config["log_level"] == "WARNING"
        assert config["add_hidden"] is True

    def test_unknown_keys_dropped(self, tmp_path):
        get_config_path(tmp_path).write_text(json.dumps({"add_hidden": False, "theme": "dark"}))
        assert load_config(tmp_path) == {"log_level": "INFO", "add_hidden": False}

    def test_corrupt_file_falls_back(self, tmp_path):
        get_config_path(tmp_path).write_text("{not json")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_non_object_file_falls_back(self, tmp_path):
        get_config_path(tmp_path).write_text(json.dumps(["DEBUG"]))
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_defaults_not_mutated(self, tmp_path):
        config = load_config(tmp_path)
        config["log_level"] = "ERROR"
        assert DEFAULT_CONFIG["log_level"] == "INFO"
