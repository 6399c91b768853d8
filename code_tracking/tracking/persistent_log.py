"""JSON file holding total coding time and the append-only session log."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import Config
from ..errors import LocalWriteFailedError, TrackingLogError
from .models import EntryKind, SessionEntry, TrackingRecord

__all__ = ["PersistentLog"]

logger = logging.getLogger(__name__)


class PersistentLog:
    """Owns ``coding-data.json``.

    Every append rewrites the whole file. Append frequency is bounded by
    the commit interval, so the rewrite cost does not matter.

    Usage:
        log = PersistentLog(path)
        record = log.append_duration(1800.0, datetime.now(timezone.utc))
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize the log.

        Args:
            path: Location of the data file. Defaults to the repo dir.
        """
        self.path = path or Config.get_data_file()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> TrackingRecord:
        """Load the record, or a zero-valued one if the file is missing.

        Raises:
            TrackingLogError: If the file exists but is not a valid record.
        """
        if not self.path.exists():
            return TrackingRecord()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return TrackingRecord.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise TrackingLogError(f"Invalid tracking data in {self.path}: {e}") from e
        except OSError as e:
            raise TrackingLogError(f"Cannot read {self.path}: {e}") from e

    def initialize(self) -> TrackingRecord:
        """Write the zero record if no file exists yet, then return the record."""
        if not self.path.exists():
            record = TrackingRecord()
            self._write(record)
            logger.info(f"Initialized tracking data at {self.path}")
            return record
        return self.load()

    def append(self, entry: SessionEntry) -> TrackingRecord:
        """Append an entry and add its duration to the running total.

        ``entry.total_time`` is recomputed from the stored total so the
        record total always equals the sum of session durations.

        Raises:
            LocalWriteFailedError: If the file cannot be written.
        """
        record = self.load()
        record.total_time += entry.duration
        stamped = SessionEntry(
            date=entry.date,
            duration=entry.duration,
            total_time=record.total_time,
            kind=entry.kind,
        )
        record.sessions.append(stamped)
        self._write(record)
        logger.debug(
            f"Appended {entry.kind.value} entry: {entry.duration:.1f}s "
            f"(total {record.total_time:.1f}s)"
        )
        return record

    def append_duration(
        self,
        duration: float,
        date: datetime,
        kind: EntryKind = EntryKind.PERIODIC,
    ) -> TrackingRecord:
        """Convenience wrapper building the entry for ``append``."""
        return self.append(
            SessionEntry(date=date, duration=max(0.0, duration), total_time=0.0, kind=kind)
        )

    def _write(self, record: TrackingRecord) -> None:
        """Replace the file atomically; a failed write leaves the old file intact."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise LocalWriteFailedError(f"Failed to write {self.path}: {e}") from e
