"""Tests for configuration loading and saving."""

import json
import shutil
import tempfile
from datetime import timedelta
from pathlib import Path

from code_tracking.config import (
    DATA_FILE_NAME,
    DEFAULT_COMMIT_INTERVAL_MS,
    DEFAULT_REPOSITORY_NAME,
    Config,
)


class TestConfig:
    """Tests for Config."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_file = self.temp_dir / "config.json"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults(self):
        config = Config()

        assert config.repository_name == DEFAULT_REPOSITORY_NAME == "code-tracking-stats"
        assert config.commit_interval_ms == DEFAULT_COMMIT_INTERVAL_MS == 1800000
        assert config.commit_interval == timedelta(minutes=30)
        assert config.poll_interval_seconds == 60

    def test_load_missing_file_returns_defaults(self):
        assert Config.load(self.config_file) == Config()

    def test_save_and_load(self):
        config = Config(repository_name="my-stats", commit_interval_ms=600000)
        config.save(self.config_file)

        loaded = Config.load(self.config_file)

        assert loaded.repository_name == "my-stats"
        assert loaded.commit_interval == timedelta(minutes=10)

    def test_unknown_keys_are_ignored(self):
        self.config_file.write_text(
            json.dumps({"repository_name": "x", "legacy_option": True}), encoding="utf-8"
        )

        assert Config.load(self.config_file).repository_name == "x"

    def test_invalid_file_falls_back_to_defaults(self):
        self.config_file.write_text("{broken", encoding="utf-8")

        assert Config.load(self.config_file) == Config()

    def test_intervals_are_clamped(self):
        config = Config(commit_interval_ms=0, poll_interval_seconds=-3)

        assert config.commit_interval_ms == 1000
        assert config.poll_interval_seconds == 1

    def test_data_file_lives_in_repo_dir(self):
        assert Config.get_data_file().name == DATA_FILE_NAME
        assert Config.get_data_file().parent == Config.get_repo_dir()
