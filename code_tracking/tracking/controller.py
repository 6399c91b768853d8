"""Tracking controller - the session state machine driving commit cycles."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..auth.keychain import KeychainManager
from ..config import Config
from ..errors import (
    CredentialMissingError,
    LocalWriteFailedError,
    SyncFailedError,
    TrackingLogError,
)
from ..notifications import APP_TITLE, send_notification
from ..state_store import LAST_SYNC_TIME_KEY, SESSION_START_KEY, StateStore
from ..sync.remote_sync import RemoteSync
from .models import EntryKind, TrackingRecord
from .persistent_log import PersistentLog
from .state import (
    ControllerState,
    Phase,
    begin_session,
    end_session,
    enter_syncing,
    is_sync_due,
    sync_failed,
    sync_succeeded,
)

__all__ = ["TrackingController", "TICK_JOB_ID"]

logger = logging.getLogger(__name__)

TICK_JOB_ID = "tracking_tick"

TokenPrompt = Callable[[], Optional[str]]
Notifier = Callable[[str, str], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackingController:
    """Owns one tracking session: start, periodic commit cycles, stop.

    A fine-grained tick (``poll_interval_seconds``) checks whether the
    coarse ``commit_interval`` has passed since the last successful sync.
    When it has, the elapsed session time is appended to the data file and
    committed/pushed. A failed push leaves the clock untouched, so the next
    tick retries with the duration measured from the original session
    start.

    At most one commit cycle runs at a time: ticks that arrive while a
    cycle is in flight are skipped, and ``stop()`` waits for it.
    """

    def __init__(
        self,
        config: Config,
        remote: RemoteSync,
        log: PersistentLog,
        store: StateStore,
        keychain: KeychainManager,
        token_prompt: Optional[TokenPrompt] = None,
        scheduler: Optional[BackgroundScheduler] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the controller.

        Args:
            config: Active configuration (commit/poll intervals, repo name)
            remote: GitHub + git collaborator
            log: Tracking data file
            store: Durable store for session timestamps
            keychain: Token storage
            token_prompt: Asks the user for a token when none is stored
            scheduler: APScheduler instance (created if None)
            notifier: ``(title, message)`` callback for user-visible messages
            clock: Returns the current aware datetime
        """
        self.config = config
        self.remote = remote
        self.log = log
        self.store = store
        self.keychain = keychain
        self.token_prompt = token_prompt
        self.scheduler = scheduler or BackgroundScheduler()
        self._notifier = notifier or send_notification
        self._now = clock

        self._state = ControllerState()
        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()

    # -- Read-only projection ---------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_tracking(self) -> bool:
        return self._state.is_tracking

    def time_remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Time until the next commit is due, or None when not tracking."""
        state = self._state
        if not state.is_tracking or state.clock is None:
            return None
        now = now or self._now()
        remaining = self.config.commit_interval - state.clock.elapsed_since_sync(now)
        return max(remaining, timedelta(0))

    def status_text(self, now: Optional[datetime] = None) -> str:
        remaining = self.time_remaining(now)
        if remaining is None:
            return "Not tracking"
        if self._state.phase is Phase.SYNCING or remaining <= timedelta(0):
            return "Committing..."
        seconds = int(remaining.total_seconds())
        return f"Next commit in: {seconds // 60}m {seconds % 60}s"

    # -- Transitions ------------------------------------------------------

    def start(self) -> bool:
        """Start tracking.

        Returns:
            True if tracking started, False if it was already running

        Raises:
            CredentialMissingError: No stored token and none supplied
            AuthInvalidError: GitHub rejected the token
            RemoteProvisionFailedError: Tracking repository could not be created
            SyncFailedError: Local git repository could not be prepared
            LocalWriteFailedError: Data file could not be initialized
        """
        with self._lock:
            if self._state.is_tracking:
                logger.info("Tracking already running")
                self._notify("Tracking already running.")
                return False

            token, stored = self._obtain_token()
            identity = self.remote.resolve_identity(token)
            self.remote.ensure_repository(token, self.config.repository_name)
            if not stored:
                self.keychain.store(token)

            self.remote.prepare_working_tree()
            self.log.initialize()
            if not self.remote.has_commits():
                self._initial_commit()

            now = self._now()
            restored_start = self.store.get_timestamp(SESSION_START_KEY)
            restored_sync = self.store.get_timestamp(LAST_SYNC_TIME_KEY)
            if restored_start is not None:
                logger.info(f"Resuming session started at {restored_start.isoformat()}")
            else:
                logger.info("Starting fresh session")

            self._state = begin_session(
                self._state,
                now,
                identity=identity,
                token=token,
                restored_session_start=restored_start,
                restored_last_sync=restored_sync,
            )
            self._persist_clock()
            self._schedule_tick()

        logger.info(
            f"Started code tracking (commit interval: {self.config.commit_interval_ms}ms, "
            f"poll: {self.config.poll_interval_seconds}s)"
        )
        self._notify("Started code tracking.")
        return True

    def on_tick(self) -> bool:
        """Evaluate one tick; run a commit cycle if one is due.

        Returns:
            True if a commit cycle ran and pushed successfully
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("Commit cycle in flight, skipping tick")
            return False
        try:
            with self._lock:
                now = self._now()
                if not is_sync_due(self._state, now, self.config.commit_interval):
                    return False
                self._state = enter_syncing(self._state)
                clock = self._state.clock
            return self._run_cycle(now, clock.session_duration(now))
        finally:
            with self._lock:
                if self._state.phase is Phase.SYNCING:
                    self._state = sync_failed(self._state)
            self._cycle_lock.release()

    def stop(self) -> Optional[bool]:
        """Stop tracking with a final flush.

        Returns:
            None if tracking was not running, otherwise whether the final
            push succeeded

        Raises:
            LocalWriteFailedError: The final entry could not be written
            TrackingLogError: The data file is unreadable
                (tracking is stopped regardless in both cases)
        """
        with self._lock:
            if not self._state.is_tracking:
                logger.debug("Stop requested while idle")
                return None
            self._cancel_tick()

        with self._cycle_lock:
            with self._lock:
                if not self._state.is_tracking:
                    return None
                now = self._now()
                duration = self._state.clock.session_duration(now)

            pushed = False
            try:
                record = self.log.append_duration(duration, now, EntryKind.FINAL)
                self.store.delete(SESSION_START_KEY)
                try:
                    self.remote.commit_and_push(f"Final update: {now.isoformat()}")
                    self.store.set_timestamp(LAST_SYNC_TIME_KEY, now)
                    pushed = True
                except SyncFailedError as e:
                    logger.warning(f"Final sync failed: {e}")
                    self._notify(f"Final commit failed: {e}")
            finally:
                with self._lock:
                    self._state = end_session(self._state)

        logger.info(
            f"Stopped code tracking (final {duration:.1f}s, total {record.total_time:.1f}s)"
        )
        self._notify("Stopped code tracking.")
        return pushed

    def update_config(self, config: Config) -> None:
        """Apply new settings; the commit interval is read on the next tick.

        Repository target changes wait for any in-flight commit cycle and
        apply to the next one.

        Raises:
            RemoteProvisionFailedError: A renamed repository could not be
                created (no setting is applied)
        """
        target = (config.repository_name, config.remote_name, config.branch)
        current = (
            self.config.repository_name,
            self.config.remote_name,
            self.config.branch,
        )
        with self._cycle_lock:
            if target != current:
                self.remote.configure(*target)
            with self._lock:
                poll_changed = (
                    config.poll_interval_seconds != self.config.poll_interval_seconds
                )
                self.config = config
                if poll_changed and self._state.is_tracking:
                    self._schedule_tick()
        logger.info(
            f"Settings updated (commit interval: {config.commit_interval_ms}ms, "
            f"poll: {config.poll_interval_seconds}s)"
        )

    # -- internal ---------------------------------------------------------

    def _obtain_token(self) -> tuple[str, bool]:
        """Return ``(token, already_stored)``."""
        token = self.keychain.load()
        if token:
            return token, True
        if self.token_prompt is not None:
            token = (self.token_prompt() or "").strip()
        if not token:
            raise CredentialMissingError("GitHub token required.")
        return token, False

    def _initial_commit(self) -> None:
        try:
            self.remote.commit_and_push("Initial commit: setup tracking")
        except SyncFailedError as e:
            # Delivered with the next successful push
            logger.warning(f"Initial push failed: {e}")

    def _run_cycle(self, now: datetime, duration: float) -> bool:
        try:
            record = self.log.append_duration(duration, now, EntryKind.PERIODIC)
        except (LocalWriteFailedError, TrackingLogError) as e:
            logger.error(f"Failed to write tracking data: {e}")
            self._notify(f"Failed to write tracking data: {e}")
            return False

        try:
            self.remote.commit_and_push(f"Update coding stats: {now.isoformat()}")
        except SyncFailedError as e:
            logger.warning(f"Auto-commit failed: {e}")
            self._notify(f"Auto-commit failed: {e}")
            return False

        with self._lock:
            self._state = sync_succeeded(self._state, now)
            self._persist_clock()
        logger.info(f"Committed {duration:.1f}s (total {record.total_time:.1f}s)")
        self._notify(f"Committed coding stats. Total: {self._format_hours(record)}")
        return True

    def _tick_job(self) -> None:
        """Scheduler entry point; never lets an exception escape."""
        try:
            self.on_tick()
        except Exception as e:
            logger.exception(f"Tick error: {e}")

    def _schedule_tick(self) -> None:
        self.scheduler.add_job(
            self._tick_job,
            trigger=IntervalTrigger(seconds=self.config.poll_interval_seconds),
            id=TICK_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()

    def _cancel_tick(self) -> None:
        try:
            self.scheduler.remove_job(TICK_JOB_ID)
        except JobLookupError:
            pass  # Not scheduled

    def _persist_clock(self) -> None:
        clock = self._state.clock
        if clock is None:
            return
        self.store.set_timestamp(SESSION_START_KEY, clock.session_start)
        self.store.set_timestamp(LAST_SYNC_TIME_KEY, clock.last_sync_time)

    def _notify(self, message: str) -> None:
        if self.config.notifications_enabled:
            self._notifier(APP_TITLE, message)

    @staticmethod
    def _format_hours(record: TrackingRecord) -> str:
        """Format the record total as ``Xh Ym``."""
        total_seconds = int(record.total_time)
        return f"{total_seconds // 3600}h {(total_seconds % 3600) // 60}m"
