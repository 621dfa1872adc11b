"""Tests for locally computed run metrics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from feedback_digest.analysis.metrics import compute_metrics, is_new, is_updated, rank_tags, window_start
from feedback_digest.types import Record, TagCount

NOW = datetime(2026, 6, 10, 9, 0, tzinfo=timezone.utc)


def _record(key: str, created: datetime, updated: datetime, tags: list[str] | None = None) -> Record:
    return Record(
        id=key,
        title=key,
        body="",
        status="Open",
        priority="None",
        category="Idea",
        created_at=created,
        updated_at=updated,
        tags=tags or [],
    )


def test_first_run_scenario_counts_new_and_updated():
    recent = [
        _record(f"BPD-{i}", NOW - timedelta(days=2), NOW - timedelta(days=1)) for i in range(10)
    ]
    older = [
        _record(f"BPD-{i}", NOW - timedelta(days=10), NOW - timedelta(days=1)) for i in range(10, 13)
    ]
    start = window_start(NOW, lookback_days=4)

    metrics = compute_metrics(recent + older, start)

    assert start == NOW - timedelta(days=4)
    assert metrics.total == 13
    assert metrics.new == 10
    assert metrics.updated == 3


def test_recent_last_run_does_not_reclassify_new_records():
    # created inside the lookback window, already seen by a run an hour ago
    record = _record("BPD-7", NOW - timedelta(days=2), NOW - timedelta(minutes=5))

    metrics = compute_metrics([record], window_start(NOW, lookback_days=4))

    assert (metrics.new, metrics.updated) == (1, 0)


def test_new_and_updated_are_exclusive():
    start = NOW - timedelta(days=1)
    created_inside = _record("A-1", NOW - timedelta(hours=2), NOW - timedelta(hours=1))
    created_before = _record("A-2", NOW - timedelta(days=3), NOW - timedelta(hours=1))
    untouched = _record("A-3", NOW - timedelta(days=3), NOW - timedelta(days=2))

    assert (is_new(created_inside, start), is_updated(created_inside, start)) == (True, False)
    assert (is_new(created_before, start), is_updated(created_before, start)) == (False, True)
    assert (is_new(untouched, start), is_updated(untouched, start)) == (False, False)


def test_rank_tags_orders_by_count_then_first_seen():
    records = [
        _record("T-1", NOW, NOW, ["a"]),
        _record("T-2", NOW, NOW, ["a", "b"]),
        _record("T-3", NOW, NOW, ["c", "a", "b"]),
    ]
    assert rank_tags(records, 5) == [TagCount("a", 3), TagCount("b", 2), TagCount("c", 1)]


def test_rank_tags_ties_keep_first_seen_order_and_cap():
    records = [_record("T-1", NOW, NOW, ["z", "y", "x", "w", "v", "u"])]
    assert [t.tag for t in rank_tags(records, 5)] == ["z", "y", "x", "w", "v"]


def test_compute_metrics_empty_batch():
    metrics = compute_metrics([], NOW)
    assert (metrics.total, metrics.new, metrics.updated, metrics.top_tags) == (0, 0, 0, [])
