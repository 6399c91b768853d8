"""Tracking module - session state machine and the persisted time log."""

from .controller import TrackingController
from .models import EntryKind, SessionEntry, TrackingRecord
from .persistent_log import PersistentLog
from .state import ControllerState, Phase, SessionClock

__all__ = [
    "TrackingController",
    "EntryKind",
    "SessionEntry",
    "TrackingRecord",
    "PersistentLog",
    "ControllerState",
    "Phase",
    "SessionClock",
]
