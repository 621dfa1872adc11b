"""
Disk cache for the full record set.

The snapshot file stores ``{"timestamp": ..., "records": [...]}`` and is
replaced wholesale on every refresh. A snapshot younger than the freshness
window is served without calling the fetch function; a missing, corrupt or
stale snapshot triggers a refetch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Callable

from .errors import CacheMissingError
from .types import CacheSnapshot, Record
from .utils.files import atomic_write_text
from .utils.logging import log_event

logger = logging.getLogger(__name__)

FetchFn = Callable[[], list[Record]]

_SEARCHABLE_FIELDS = (
    "id",
    "title",
    "body",
    "status",
    "priority",
    "category",
    "issue_type",
    "assignee",
    "reporter",
)


@dataclass
class CacheInfo:
    """Summary of the snapshot on disk."""
    path: Path
    timestamp: datetime
    age_minutes: float
    count: int
    fresh: bool


class RecordCache:
    """Freshness-window cache over a record snapshot file."""

    def __init__(
        self,
        path: Path | str,
        freshness_minutes: int = 60,
        clock: Callable[[], datetime] | None = None,
    ):
        self.path = Path(path)
        self.freshness_minutes = freshness_minutes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self, force_refresh: bool, fetch_fn: FetchFn) -> list[Record]:
        """Return cached records when fresh, otherwise fetch and persist.

        Args:
            force_refresh: Ignore a fresh snapshot
            fetch_fn: Called with no arguments to fetch the full record set

        Returns:
            Records from the snapshot or from ``fetch_fn``
        """
        now = self._clock()
        if not force_refresh:
            snapshot = self._read_snapshot()
            if snapshot is not None and snapshot.is_fresh(now, self.freshness_minutes * 60):
                log_event(
                    logger,
                    "Using cached records",
                    event="cache_hit",
                    count=len(snapshot.records),
                    age_minutes=round((now - snapshot.timestamp).total_seconds() / 60, 1),
                )
                return snapshot.records

        records = fetch_fn()
        self._write_snapshot(CacheSnapshot(timestamp=now, records=records))
        log_event(
            logger,
            "Cached fresh records",
            event="cache_refresh",
            count=len(records),
            forced=force_refresh,
        )
        return records

    def find(self, record_id: str) -> Record | None:
        wanted = record_id.strip().lower()
        for record in self._require_snapshot().records:
            if record.id.lower() == wanted:
                return record
        return None

    def all_records(self) -> list[Record]:
        return list(self._require_snapshot().records)

    def search_text(self, query: str) -> list[Record]:
        """Case-insensitive substring match over id, title and body."""
        needle = query.lower()
        return [
            record
            for record in self._require_snapshot().records
            if needle in record.id.lower()
            or needle in record.title.lower()
            or needle in record.body.lower()
        ]

    def search_by_field(self, field_name: str, query: str) -> list[Record]:
        """Case-insensitive substring match over one record field or custom attribute."""
        needle = query.lower()
        matches = []
        for record in self._require_snapshot().records:
            value = _field_value(record, field_name)
            if value is not None and needle in value.lower():
                matches.append(record)
        return matches

    def info(self) -> CacheInfo | None:
        snapshot = self._read_snapshot()
        if snapshot is None:
            return None
        now = self._clock()
        return CacheInfo(
            path=self.path,
            timestamp=snapshot.timestamp,
            age_minutes=(now - snapshot.timestamp).total_seconds() / 60,
            count=len(snapshot.records),
            fresh=snapshot.is_fresh(now, self.freshness_minutes * 60),
        )

    def _require_snapshot(self) -> CacheSnapshot:
        snapshot = self._read_snapshot()
        if snapshot is None:
            raise CacheMissingError(str(self.path))
        return snapshot

    def _read_snapshot(self) -> CacheSnapshot | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return CacheSnapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return None

    def _write_snapshot(self, snapshot: CacheSnapshot) -> None:
        atomic_write_text(self.path, json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2))


def _field_value(record: Record, field_name: str) -> str | None:
    key = field_name.strip()
    normalized = key.lower().replace(" ", "_")
    if normalized in _SEARCHABLE_FIELDS:
        return str(getattr(record, normalized))
    if normalized == "tags":
        return ", ".join(record.tags)
    for name, value in record.attributes.items():
        if name.lower() == key.lower() or name.lower().replace(" ", "_") == normalized:
            return value
    return None
