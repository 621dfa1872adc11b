"""Tests for the last-run marker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from feedback_digest.state import RunStateTracker, describe_last_run


def test_get_last_run_missing_file_is_first_run(tmp_path):
    tracker = RunStateTracker(tmp_path / ".last-run")
    assert tracker.get_last_run() is None


def test_save_then_get_round_trips_timestamp(tmp_path):
    path = tmp_path / "state" / ".last-run"
    tracker = RunStateTracker(path)
    stamp = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

    tracker.save_last_run(stamp)

    assert path.read_text(encoding="utf-8") == "2026-03-04T05:06:07+00:00"
    assert tracker.get_last_run() == stamp
    assert [p.name for p in path.parent.iterdir()] == [".last-run"]


def test_corrupt_marker_is_treated_as_first_run(tmp_path, caplog):
    path = tmp_path / ".last-run"
    path.write_text("not-a-timestamp", encoding="utf-8")

    assert RunStateTracker(path).get_last_run() is None
    assert "corrupt run-state" in caplog.text


def test_empty_marker_is_treated_as_first_run(tmp_path):
    path = tmp_path / ".last-run"
    path.write_text("  \n", encoding="utf-8")
    assert RunStateTracker(path).get_last_run() is None


def test_marker_accepts_zulu_suffix(tmp_path):
    path = tmp_path / ".last-run"
    path.write_text("2026-01-02T03:04:05.000Z\n", encoding="utf-8")
    assert RunStateTracker(path).get_last_run() == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_save_overwrites_previous_marker(tmp_path):
    tracker = RunStateTracker(tmp_path / ".last-run")
    first = datetime(2026, 1, 1, tzinfo=timezone.utc)
    tracker.save_last_run(first)
    tracker.save_last_run(first + timedelta(days=1))
    assert tracker.get_last_run() == first + timedelta(days=1)


def test_describe_last_run():
    now = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)
    assert describe_last_run(None, now) == "first run"
    assert describe_last_run(now - timedelta(days=3, hours=2), now) == "3 days ago"
    assert describe_last_run(now - timedelta(days=1), now) == "1 day ago"
    assert describe_last_run(now - timedelta(hours=5), now) == "5 hours ago"
    assert describe_last_run(now - timedelta(minutes=20), now) == "less than an hour ago"
