"""Tests for user config persistence."""

import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from roleplay.interface.config import (
    DEFAULT_CONFIG,
    get_config_path,
    load_config,
    resolve_data_dir,
    save_config,
    set_backend,
    set_model,
)


class TestConfig:

    def test_defaults_when_missing(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_merges_with_defaults(self, tmp_path):
        """Keys missing from an older config file fall back to defaults."""
        get_config_path(tmp_path).write_text(json.dumps({"backend": "openrouter"}))

        config = load_config(tmp_path)
        assert config["backend"] == "openrouter"
        assert config["history_max"] == 100
        assert config["log_level"] == "INFO"

    def test_corrupt_file_ignored(self, tmp_path):
        get_config_path(tmp_path).write_text("{oops")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_save_creates_directory(self, tmp_path):
        config_dir = tmp_path / "nested" / "roleplay"
        assert save_config({"backend": "mock"}, config_dir) is True
        assert json.loads(get_config_path(config_dir).read_text()) == {"backend": "mock"}

    def test_set_backend_and_model(self, tmp_path):
        set_backend("claude", tmp_path)
        set_model("claude-3-5-sonnet-latest", tmp_path)

        config = load_config(tmp_path)
        assert config["backend"] == "claude"
        assert config["model"] == "claude-3-5-sonnet-latest"

    def test_defaults_not_mutated(self, tmp_path):
        load_config(tmp_path)["backend"] = "mock"
        assert DEFAULT_CONFIG["backend"] == "auto"

    def test_unknown_keys_dropped(self, tmp_path):
        get_config_path(tmp_path).write_text(json.dumps({"theme": "neon", "model": "gpt-4o"}))
        config = load_config(tmp_path)
        assert "theme" not in config
        assert config["model"] == "gpt-4o"

    def test_non_object_file_ignored(self, tmp_path):
        get_config_path(tmp_path).write_text("[1, 2]")
        assert load_config(tmp_path) == DEFAULT_CONFIG


class TestResolveDataDir:

    def test_override_wins(self, tmp_path):
        assert resolve_data_dir(DEFAULT_CONFIG, str(tmp_path)) == tmp_path

    def test_expands_home(self):
        config = dict(DEFAULT_CONFIG, data_dir="~/chars")
        assert resolve_data_dir(config) == Path.home() / "chars"
