"""Data model for the persisted tracking record."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

__all__ = ["EntryKind", "SessionEntry", "TrackingRecord"]


class EntryKind(str, Enum):
    """Why a session entry was appended."""

    PERIODIC = "periodic"
    FINAL = "final"


def _parse_date(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SessionEntry:
    """One flushed span of coding time. Immutable once appended."""

    date: datetime
    duration: float  # seconds
    total_time: float  # cumulative total after this entry, seconds
    kind: EntryKind = EntryKind.PERIODIC

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "duration": self.duration,
            "totalTime": self.total_time,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionEntry":
        """Create from the on-disk representation.

        Entries written before ``kind`` existed carry no kind (periodic) or
        the older ``type`` key.

        Raises:
            TypeError: If ``data`` is not a JSON object.
        """
        if not isinstance(data, dict):
            raise TypeError(f"session entry must be an object, got {type(data).__name__}")
        kind = data.get("kind") or data.get("type") or EntryKind.PERIODIC.value
        return cls(
            date=_parse_date(data["date"]),
            duration=float(data["duration"]),
            total_time=float(data.get("totalTime", 0.0)),
            kind=EntryKind(kind),
        )


@dataclass
class TrackingRecord:
    """The whole ``coding-data.json`` document."""

    total_time: float = 0.0
    sessions: list[SessionEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalTime": self.total_time,
            "sessions": [entry.to_dict() for entry in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TrackingRecord":
        if not isinstance(data, dict):
            raise TypeError(f"tracking data must be an object, got {type(data).__name__}")
        sessions = data.get("sessions", [])
        if not isinstance(sessions, list):
            raise TypeError(f"sessions must be a list, got {type(sessions).__name__}")
        return cls(
            total_time=float(data.get("totalTime", 0.0)),
            sessions=[SessionEntry.from_dict(s) for s in sessions],
        )
