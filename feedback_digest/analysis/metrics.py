"""Local metrics for a batch of records. No provider calls."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta

from ..types import Metrics, Record, TagCount


def window_start(now: datetime, lookback_days: int) -> datetime:
    """Start of the classification window: always ``now - lookback_days``.

    The last-run marker only narrows the fetch; a record created inside the
    lookback window stays "new" even if an earlier run already saw it.
    """
    return now - timedelta(days=lookback_days)


def is_new(record: Record, start: datetime) -> bool:
    return record.created_at > start


def is_updated(record: Record, start: datetime) -> bool:
    return record.updated_at > start and record.created_at <= start


def rank_tags(records: list[Record], top_n: int) -> list[TagCount]:
    """Most frequent tags, ties in first-seen order."""
    counts: Counter[str] = Counter()
    for record in records:
        counts.update(record.tags)
    # Counter.most_common keeps insertion order among equal counts
    return [TagCount(tag=tag, count=count) for tag, count in counts.most_common(top_n)]


def compute_metrics(records: list[Record], start: datetime, top_n: int = 5) -> Metrics:
    return Metrics(
        total=len(records),
        new=sum(1 for r in records if is_new(r, start)),
        updated=sum(1 for r in records if is_updated(r, start)),
        top_tags=rank_tags(records, top_n) if top_n > 0 else [],
    )
