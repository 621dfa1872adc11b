"""
Run-state tracking for incremental fetches.

The marker file holds one ISO-8601 timestamp: the start time of the last
run that completed delivery. A missing or corrupt marker means "no prior
run" and the caller falls back to its lookback window.
"""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path

from .types import parse_timestamp
from .utils.files import atomic_write_text

logger = logging.getLogger(__name__)


class RunStateTracker:
    """Read and write the last-run marker file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def get_last_run(self) -> datetime | None:
        """Return the stored timestamp, or None when absent or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read run-state file %s: %s", self.path, exc)
            return None
        if not raw:
            return None
        try:
            return parse_timestamp(raw)
        except ValueError:
            logger.warning("Ignoring corrupt run-state file %s: %r", self.path, raw[:80])
            return None

    def save_last_run(self, timestamp: datetime) -> None:
        atomic_write_text(self.path, timestamp.isoformat())
        logger.debug("Saved run-state %s to %s", timestamp.isoformat(), self.path)


def describe_last_run(last_run: datetime | None, now: datetime) -> str:
    """Describe how long ago the last run happened.

    Args:
        last_run: Stored run-state, or None
        now: Current time

    Returns:
        "first run", "N days ago", "N hours ago" or "less than an hour ago"
    """
    if last_run is None:
        return "first run"
    elapsed_hours = int((now - last_run).total_seconds() // 3600)
    days = elapsed_hours // 24
    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if elapsed_hours > 0:
        return f"{elapsed_hours} hour{'s' if elapsed_hours > 1 else ''} ago"
    return "less than an hour ago"
