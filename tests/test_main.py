"""Tests for the host commands and CLI."""

import json
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from code_tracking.config import Config
from code_tracking.errors import (
    CredentialMissingError,
    LocalWriteFailedError,
    RemoteProvisionFailedError,
)
from code_tracking.main import (
    CodeTrackingApp,
    SingleInstanceLock,
    build_parser,
    cmd_logout,
    cmd_status,
)
from code_tracking.state_store import LAST_SYNC_TIME_KEY, StateStore
from code_tracking.tracking.models import EntryKind
from code_tracking.tracking.persistent_log import PersistentLog


class IsolatedDirsMixin:
    """Point every platformdirs location at a temp directory."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self._patchers = [
            patch.object(Config, "get_config_dir", return_value=self.temp_dir / "config"),
            patch.object(Config, "get_data_dir", return_value=self.temp_dir / "data"),
            patch.object(Config, "get_log_dir", return_value=self.temp_dir / "logs"),
        ]
        for patcher in self._patchers:
            patcher.start()

    def teardown_method(self):
        for patcher in self._patchers:
            patcher.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)


class TestCodeTrackingApp(IsolatedDirsMixin):
    """Tests for the command boundary."""

    def setup_method(self):
        super().setup_method()
        with patch("code_tracking.main.setup_logging"):
            self.app = CodeTrackingApp(Config())
        self.app.controller = Mock()

    def teardown_method(self):
        self.app._shutdown()
        super().teardown_method()

    def test_components_use_configured_paths(self):
        assert self.app.log.path == self.temp_dir / "data" / "repo" / "coding-data.json"
        assert self.app.repo.path == self.temp_dir / "data" / "repo"
        assert self.app.store.db_path == self.temp_dir / "data" / "state.db"

    @patch("code_tracking.main.send_notification")
    def test_start_tracking_success(self, mock_notify):
        assert self.app.start_tracking() is True

        self.app.controller.start.assert_called_once()
        mock_notify.assert_not_called()

    @patch("code_tracking.main.send_notification")
    def test_start_tracking_surfaces_errors(self, mock_notify):
        self.app.controller.start.side_effect = CredentialMissingError("GitHub token required.")

        assert self.app.start_tracking() is False

        mock_notify.assert_called_once_with("Code Tracking", "GitHub token required.")

    @patch("code_tracking.main.send_notification")
    def test_stop_tracking_surfaces_errors(self, mock_notify):
        self.app.controller.stop.side_effect = LocalWriteFailedError("disk full")

        assert self.app.stop_tracking() is False

        mock_notify.assert_called_once()

    @patch("code_tracking.main.send_notification")
    def test_config_reload_applies_changes(self, mock_notify):
        Config(commit_interval_ms=120000).save()

        self.app._reload_config_if_changed()

        applied = self.app.controller.update_config.call_args.args[0]
        assert applied.commit_interval_ms == 120000

    @patch("code_tracking.main.send_notification")
    def test_config_reload_skips_unchanged_file(self, mock_notify):
        Config().save()
        self.app._reload_config_if_changed()
        self.app.controller.update_config.reset_mock()

        self.app._reload_config_if_changed()

        self.app.controller.update_config.assert_not_called()

    def test_run_returns_error_when_start_fails(self):
        self.app.start_tracking = Mock(return_value=False)

        with patch("code_tracking.main.signal.signal"):
            assert self.app.run() == 1


class TestCli(IsolatedDirsMixin):
    """Tests for CLI commands."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_parser_commands(self):
        parser = build_parser()

        for command in ("run", "status", "logout"):
            args = parser.parse_args([command])
            assert args.command == command
            assert callable(args.func)

    @patch("code_tracking.main.KeychainManager")
    def test_status_prints_totals(self, mock_keychain, capsys):
        log = PersistentLog()
        now = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)
        log.append_duration(3600.0, now)
        log.append_duration(1800.0, now, EntryKind.FINAL)
        store = StateStore()
        store.set_timestamp(LAST_SYNC_TIME_KEY, now)
        store.close()
        mock_keychain.return_value.has_token.return_value = True

        assert cmd_status(build_parser().parse_args(["status"])) == 0

        out = capsys.readouterr().out
        assert "Total tracked: 1h 30m (2 entries)" in out
        assert "final" in out
        assert "Token stored: yes" in out

    @patch("code_tracking.main.KeychainManager")
    def test_status_with_corrupt_data(self, mock_keychain, capsys):
        data_file = Config.get_data_file()
        data_file.parent.mkdir(parents=True)
        data_file.write_text(json.dumps({"sessions": [{"date": "bad"}]}), encoding="utf-8")

        assert cmd_status(build_parser().parse_args(["status"])) == 1

    @patch("code_tracking.main.KeychainManager")
    def test_logout(self, mock_keychain, capsys):
        mock_keychain.return_value.delete.return_value = True

        assert cmd_logout(build_parser().parse_args(["logout"])) == 0
        assert "removed" in capsys.readouterr().out


class TestConfigReload(IsolatedDirsMixin):
    """Reloaded settings reach the sync layer."""

    def setup_method(self):
        super().setup_method()
        with patch("code_tracking.main.setup_logging"):
            self.app = CodeTrackingApp(Config())

    def teardown_method(self):
        self.app._shutdown()
        super().teardown_method()

    @patch("code_tracking.main.send_notification")
    def test_reload_updates_remote_and_git_settings(self, mock_notify):
        Config(
            repository_name="renamed-stats",
            branch="trunk",
            sync_timeout_seconds=5,
            api_url="https://github.example.com/api/v3/",
        ).save()

        self.app._reload_config_if_changed()

        assert self.app.remote.repository_name == "renamed-stats"
        assert self.app.remote.branch == "trunk"
        assert self.app.repo.timeout == 5
        assert self.app.github.api_url == "https://github.example.com/api/v3"
        assert self.app.controller.config.repository_name == "renamed-stats"

    @patch("code_tracking.main.send_notification")
    def test_failed_rename_leaves_settings_unchanged(self, mock_notify):
        self.app.remote.configure = Mock(side_effect=RemoteProvisionFailedError("403"))

        assert self.app.apply_config(
            Config(repository_name="renamed-stats", sync_timeout_seconds=5)
        ) is False

        assert self.app.repo.timeout == 120
        assert self.app.config.repository_name == "code-tracking-stats"
        assert "Settings not applied" in mock_notify.call_args.args[1]


class TestSingleInstanceLock(IsolatedDirsMixin):
    """Tests for the single-instance lock."""

    def test_second_holder_is_refused(self):
        first = SingleInstanceLock()
        second = SingleInstanceLock()

        assert first.acquire() is True
        try:
            assert second.acquire() is False
        finally:
            first.release()

        assert second.acquire() is True
        second.release()

    def test_release_removes_lock_file(self):
        with SingleInstanceLock() as acquired:
            assert acquired is True
            assert (self.temp_dir / "data" / ".code-tracking.lock").exists()

        assert not (self.temp_dir / "data" / ".code-tracking.lock").exists()

    def test_release_without_acquire_is_noop(self):
        SingleInstanceLock().release()
