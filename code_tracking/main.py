"""Code Tracking - Main entry point."""

import argparse
import getpass
import logging
import os
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from . import __version__
from .auth import KeychainManager
from .config import Config, setup_logging
from .errors import CodeTrackingError
from .notifications import APP_TITLE, send_notification
from .state_store import LAST_SYNC_TIME_KEY, StateStore
from .sync import GitHubClient, GitRepository, RemoteSync
from .tracking import PersistentLog, TrackingController

logger = logging.getLogger(__name__)

CONFIG_RELOAD_INTERVAL = 30  # seconds


def prompt_for_token() -> Optional[str]:
    """Ask for a GitHub token on the terminal, if there is one."""
    if not sys.stdin.isatty():
        return None
    try:
        return getpass.getpass("GitHub token with repo scope: ")
    except (EOFError, KeyboardInterrupt):
        return None


class CodeTrackingApp:
    """Wires components together and exposes the host commands.

    ``start_tracking`` and ``stop_tracking`` are the command boundary:
    every tracking error is caught here, logged and shown as a
    notification, so no failure takes the host process down.
    """

    def __init__(self, config: Optional[Config] = None):
        """Initialize the application."""
        self.config = config or Config.load()
        setup_logging(self.config.debug_mode)

        logger.info(f"Code Tracking {__version__} starting...")
        logger.info(f"Tracking repository: {self.config.repository_name}")

        self.keychain = KeychainManager()
        self.github = GitHubClient(api_url=self.config.api_url)
        self.repo = GitRepository(
            Config.get_repo_dir(), timeout=self.config.sync_timeout_seconds
        )
        self.remote = RemoteSync(
            github=self.github,
            repo=self.repo,
            repository_name=self.config.repository_name,
            remote_name=self.config.remote_name,
            branch=self.config.branch,
        )
        self.log = PersistentLog()
        self.store = StateStore()
        self.scheduler = BackgroundScheduler()

        self.controller = TrackingController(
            config=self.config,
            remote=self.remote,
            log=self.log,
            store=self.store,
            keychain=self.keychain,
            token_prompt=prompt_for_token,
            scheduler=self.scheduler,
        )

        self._shutdown_event = threading.Event()
        self._shutdown_done = False
        self._config_mtime = self._read_config_mtime()

    # -- Host commands ----------------------------------------------------

    def start_tracking(self) -> bool:
        """Start tracking. Returns True if tracking is running afterwards."""
        try:
            self.controller.start()
            return True
        except CodeTrackingError as e:
            logger.error(f"Failed to start tracking: {e}")
            self._notify(str(e))
            return False

    def stop_tracking(self) -> bool:
        """Stop tracking with a final flush. Returns False on a local failure."""
        try:
            self.controller.stop()
            return True
        except CodeTrackingError as e:
            logger.error(f"Failed to stop tracking cleanly: {e}")
            self._notify(str(e))
            return False

    # -- Lifecycle --------------------------------------------------------

    def run(self) -> int:
        """Start tracking and block until a signal asks us to stop."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        if not self.start_tracking():
            return 1

        self.scheduler.add_job(
            self._reload_config_if_changed,
            trigger=IntervalTrigger(seconds=CONFIG_RELOAD_INTERVAL),
            id="config_reload_job",
            replace_existing=True,
        )

        print(self.controller.status_text())
        while not self._shutdown_event.is_set():
            self._shutdown_event.wait(1.0)

        return 0 if self.stop_tracking() else 1

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}")
        self._shutdown_event.set()

    def _read_config_mtime(self) -> Optional[float]:
        try:
            return Config.get_config_file().stat().st_mtime
        except OSError:
            return None

    def _reload_config_if_changed(self) -> None:
        """Pick up edits to the config file; applied on the next tick."""
        mtime = self._read_config_mtime()
        if mtime == self._config_mtime:
            return
        self._config_mtime = mtime
        self.apply_config(Config.load())

    def apply_config(self, config: Config) -> bool:
        """Push new settings down to every component. Returns False on failure."""
        try:
            self.controller.update_config(config)
        except CodeTrackingError as e:
            logger.error(f"Failed to apply settings: {e}")
            self._notify(f"Settings not applied: {e}")
            return False

        self.repo.timeout = config.sync_timeout_seconds
        self.github.api_url = config.api_url.rstrip("/")
        if config.debug_mode != self.config.debug_mode:
            logging.getLogger().setLevel(logging.DEBUG if config.debug_mode else logging.INFO)
        self.config = config
        self._notify("Code Tracking settings updated.")
        return True

    def _notify(self, message: str) -> None:
        if self.config.notifications_enabled:
            send_notification(APP_TITLE, message)

    def _shutdown(self) -> None:
        """Release resources. Safe to call multiple times."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down...")

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.github.close()
        self.store.close()

        logger.info("Shutdown complete")

    def __enter__(self) -> "CodeTrackingApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._shutdown()


class SingleInstanceLock:
    """Advisory lock on a file in the data dir.

    Only one host may own the data file and the git working tree. The lock
    is released by the OS if the process dies, so a stale file never
    blocks the next run.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or Config.get_data_dir() / ".code-tracking.lock"
        self._file = None

    def acquire(self) -> bool:
        """Try to take the lock without blocking. Returns True on success."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.path, "a+")  # noqa: SIM115
        try:
            _lock_file(handle)
        except OSError:
            handle.close()
            return False
        handle.seek(0)
        handle.truncate(0)
        handle.write(str(os.getpid()))
        handle.flush()
        self._file = handle
        return True

    def release(self) -> None:
        if self._file is None:
            return
        handle, self._file = self._file, None
        try:
            _unlock_file(handle)
        except OSError as e:
            logger.debug(f"Unlock failed: {e}")
        handle.close()
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


if sys.platform == "win32":
    import msvcrt

    def _lock_file(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)

    def _unlock_file(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock_file(handle) -> None:
        fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock_file(handle) -> None:
        fcntl.flock(handle, fcntl.LOCK_UN)


def _format_total(total_seconds: float) -> str:
    total = int(total_seconds)
    return f"{total // 3600}h {(total % 3600) // 60}m"


def cmd_run(args: argparse.Namespace) -> int:
    lock = SingleInstanceLock()
    if not lock.acquire():
        print("Tracking already running.")
        return 0

    try:
        with CodeTrackingApp() as app:
            return app.run()
    finally:
        lock.release()


def cmd_status(args: argparse.Namespace) -> int:
    config = Config.load()
    try:
        record = PersistentLog().load()
    except CodeTrackingError as e:
        print(f"Cannot read tracking data: {e}")
        return 1

    print(f"Total tracked: {_format_total(record.total_time)} ({len(record.sessions)} entries)")
    if record.sessions:
        last = record.sessions[-1]
        print(f"Last entry: {last.date.isoformat()} ({last.kind.value}, {last.duration:.0f}s)")

    store = StateStore()
    try:
        last_sync = store.get_timestamp(LAST_SYNC_TIME_KEY)
    finally:
        store.close()
    if last_sync is not None:
        remaining = config.commit_interval - (datetime.now(timezone.utc) - last_sync)
        seconds = max(0, int(remaining.total_seconds()))
        print(f"Last sync: {last_sync.isoformat()}; next commit due in {seconds // 60}m {seconds % 60}s")
    print(f"Token stored: {'yes' if KeychainManager().has_token() else 'no'}")
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    if KeychainManager().delete():
        print("GitHub token removed.")
        return 0
    print("Failed to remove GitHub token.")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-tracking",
        description="Track coding time and sync it to a private GitHub repository.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Start tracking until interrupted")
    run_parser.set_defaults(func=cmd_run)

    status_parser = subparsers.add_parser("status", help="Show tracked totals")
    status_parser.set_defaults(func=cmd_status)

    logout_parser = subparsers.add_parser("logout", help="Forget the stored GitHub token")
    logout_parser.set_defaults(func=cmd_logout)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
