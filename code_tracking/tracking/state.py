"""Controller state and the pure transitions between its phases.

Each transition takes a ``ControllerState`` and returns a new one; the
controller owns the current value and performs the side effects.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

__all__ = [
    "Phase",
    "SessionClock",
    "ControllerState",
    "InvalidTransition",
    "begin_session",
    "is_sync_due",
    "enter_syncing",
    "sync_succeeded",
    "sync_failed",
    "end_session",
]


class Phase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SYNCING = "syncing"


class InvalidTransition(Exception):
    """A transition was requested from a phase that does not allow it."""

    pass


@dataclass(frozen=True)
class SessionClock:
    """Session start and the last successful sync."""

    session_start: datetime
    last_sync_time: datetime

    def elapsed_since_sync(self, now: datetime) -> timedelta:
        return now - self.last_sync_time

    def session_duration(self, now: datetime) -> float:
        """Seconds since the session (re)started, never negative."""
        return max(0.0, (now - self.session_start).total_seconds())

    def reset(self, now: datetime) -> "SessionClock":
        return SessionClock(session_start=now, last_sync_time=now)


@dataclass(frozen=True)
class ControllerState:
    phase: Phase = Phase.IDLE
    clock: Optional[SessionClock] = None
    identity: Optional[str] = None
    token: Optional[str] = field(default=None, repr=False)

    @property
    def is_tracking(self) -> bool:
        return self.phase is not Phase.IDLE


def begin_session(
    state: ControllerState,
    now: datetime,
    identity: str,
    token: str,
    restored_session_start: Optional[datetime] = None,
    restored_last_sync: Optional[datetime] = None,
) -> ControllerState:
    """IDLE -> ACTIVE, resuming stored timestamps where given."""
    if state.phase is not Phase.IDLE:
        raise InvalidTransition(f"Cannot start from {state.phase.value}")
    clock = SessionClock(
        session_start=restored_session_start or now,
        last_sync_time=restored_last_sync or now,
    )
    return ControllerState(phase=Phase.ACTIVE, clock=clock, identity=identity, token=token)


def is_sync_due(state: ControllerState, now: datetime, interval: timedelta) -> bool:
    if state.phase is not Phase.ACTIVE or state.clock is None:
        return False
    return state.clock.elapsed_since_sync(now) >= interval


def enter_syncing(state: ControllerState) -> ControllerState:
    if state.phase is not Phase.ACTIVE:
        raise InvalidTransition(f"Cannot sync from {state.phase.value}")
    return replace(state, phase=Phase.SYNCING)


def sync_succeeded(state: ControllerState, now: datetime) -> ControllerState:
    """SYNCING -> ACTIVE with the session restarted at ``now``."""
    if state.phase is not Phase.SYNCING or state.clock is None:
        raise InvalidTransition(f"No sync in progress ({state.phase.value})")
    return replace(state, phase=Phase.ACTIVE, clock=state.clock.reset(now))


def sync_failed(state: ControllerState) -> ControllerState:
    """SYNCING -> ACTIVE with the clock untouched so the next tick retries."""
    if state.phase is not Phase.SYNCING:
        raise InvalidTransition(f"No sync in progress ({state.phase.value})")
    return replace(state, phase=Phase.ACTIVE)


def end_session(state: ControllerState) -> ControllerState:
    return ControllerState()
