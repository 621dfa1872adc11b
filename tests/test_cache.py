"""Tests for the record snapshot cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json

import pytest

from feedback_digest.cache import RecordCache
from feedback_digest.errors import CacheMissingError
from feedback_digest.types import CacheSnapshot, Comment, Record

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _record(key: str, title: str = "Title", **kwargs) -> Record:
    defaults = dict(
        body="Body text",
        status="Open",
        priority="Medium",
        category="Idea",
        created_at=NOW - timedelta(days=2),
        updated_at=NOW - timedelta(days=1),
    )
    defaults.update(kwargs)
    return Record(id=key, title=title, **defaults)


def _write_snapshot(path, records, timestamp):
    snapshot = CacheSnapshot(timestamp=timestamp, records=records)
    path.write_text(json.dumps(snapshot.to_dict()), encoding="utf-8")


class _FetchSpy:
    def __init__(self, records):
        self.records = records
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.records


def test_fresh_snapshot_is_served_without_fetching(tmp_path):
    path = tmp_path / "cache.json"
    cached = [_record("BPD-1", comments=[Comment("Ann", "Agreed")], attributes={"Area": "Billing"})]
    _write_snapshot(path, cached, NOW - timedelta(minutes=30))
    before = path.read_text(encoding="utf-8")
    fetch = _FetchSpy([_record("BPD-2")])

    records = RecordCache(path, freshness_minutes=60, clock=lambda: NOW).load(False, fetch)

    assert fetch.calls == 0
    assert records == cached
    assert path.read_text(encoding="utf-8") == before


def test_stale_snapshot_triggers_fetch_and_replaces_file(tmp_path):
    path = tmp_path / "cache.json"
    _write_snapshot(path, [_record("BPD-1")], NOW - timedelta(minutes=61))
    fetch = _FetchSpy([_record("BPD-2"), _record("BPD-3")])

    records = RecordCache(path, freshness_minutes=60, clock=lambda: NOW).load(False, fetch)

    assert fetch.calls == 1
    assert [r.id for r in records] == ["BPD-2", "BPD-3"]
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["timestamp"] == NOW.isoformat()
    assert [r["id"] for r in data["records"]] == ["BPD-2", "BPD-3"]


def test_force_refresh_ignores_fresh_snapshot(tmp_path):
    path = tmp_path / "cache.json"
    _write_snapshot(path, [_record("BPD-1")], NOW - timedelta(minutes=1))
    fetch = _FetchSpy([_record("BPD-9")])

    records = RecordCache(path, clock=lambda: NOW).load(True, fetch)

    assert fetch.calls == 1
    assert [r.id for r in records] == ["BPD-9"]


@pytest.mark.parametrize("content", ["{not json", '{"records": []}', '{"timestamp": "x", "records": []}', "[]"])
def test_corrupt_snapshot_behaves_like_stale(tmp_path, content):
    path = tmp_path / "cache.json"
    path.write_text(content, encoding="utf-8")
    fetch = _FetchSpy([_record("BPD-5")])

    records = RecordCache(path, clock=lambda: NOW).load(False, fetch)

    assert fetch.calls == 1
    assert [r.id for r in records] == ["BPD-5"]


def test_missing_snapshot_triggers_fetch(tmp_path):
    fetch = _FetchSpy([])
    assert RecordCache(tmp_path / "nope.json", clock=lambda: NOW).load(False, fetch) == []
    assert fetch.calls == 1


def test_search_without_snapshot_raises_cache_missing(tmp_path):
    cache = RecordCache(tmp_path / "cache.json")
    with pytest.raises(CacheMissingError, match="No cached data"):
        cache.search_text("anything")
    with pytest.raises(CacheMissingError):
        cache.find("BPD-1")
    with pytest.raises(CacheMissingError):
        cache.search_by_field("status", "open")


def test_find_and_search_over_snapshot(tmp_path):
    path = tmp_path / "cache.json"
    _write_snapshot(
        path,
        [
            _record("BPD-1", "Dark mode request", body="Users want a dark theme"),
            _record("BPD-2", "Export to CSV", status="Done", attributes={"Product Area": "Reporting"}),
            _record("BPD-3", "Slow dashboard", tags=["performance"]),
        ],
        NOW - timedelta(days=3),
    )
    cache = RecordCache(path, clock=lambda: NOW)

    assert cache.find("bpd-2").title == "Export to CSV"
    assert cache.find("BPD-404") is None
    assert [r.id for r in cache.search_text("DARK")] == ["BPD-1"]
    assert cache.search_text("no such text") == []
    assert [r.id for r in cache.search_by_field("status", "done")] == ["BPD-2"]
    assert [r.id for r in cache.search_by_field("Product Area", "report")] == ["BPD-2"]
    assert [r.id for r in cache.search_by_field("product_area", "report")] == ["BPD-2"]
    assert [r.id for r in cache.search_by_field("tags", "perf")] == ["BPD-3"]
    assert cache.search_by_field("unknown field", "x") == []


def test_info_reports_age_and_freshness(tmp_path):
    path = tmp_path / "cache.json"
    cache = RecordCache(path, freshness_minutes=60, clock=lambda: NOW)
    assert cache.info() is None

    _write_snapshot(path, [_record("BPD-1"), _record("BPD-2")], NOW - timedelta(minutes=90))
    info = cache.info()

    assert info.count == 2
    assert info.age_minutes == pytest.approx(90)
    assert info.fresh is False
