"""Tests for the Server Snapshot Cache."""

import os
import threading
import time

import pytest

from handbook_kernel.models.config import ReloadFailurePolicy
from handbook_kernel.models.errors import SourceAbsentError, SourceMalformedError
from handbook_kernel.snapshot_cache.cache import SnapshotCache
from handbook_kernel.source.oracle import SourceFreshnessOracle
from handbook_kernel.source.workbook import SheetRows


class _StubReader:
    """Reader double: counts calls, can block, can fail."""

    def __init__(self, sheets=None):
        self.sheets = sheets or SheetRows(
            people=[("Sales", "1", "Mgr", "Jane Doe", "101", "100")],
            rooms=[("Austin", "1st Ave", "6")],
        )
        self.error = None
        self.calls = 0
        self.entered = threading.Event()
        self.release = threading.Event()
        self.release.set()

    def read(self, path):
        self.calls += 1
        self.entered.set()
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return self.sheets


def _touch(path, seconds):
    ns = int(seconds * 1_000_000_000)
    os.utime(path, ns=(ns, ns))


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "handbook.xlsx"
    path.write_bytes(b"stub")
    _touch(path, 1_000)
    return path


def _make_cache(path, reader, policy=ReloadFailurePolicy.DISCARD):
    return SnapshotCache(SourceFreshnessOracle(path), reader, reload_failure_policy=policy)


class TestFreshness:
    def test_starts_empty(self, source):
        cache = _make_cache(source, _StubReader())
        assert cache.status == "empty"
        assert cache.current is None
        assert cache.load_count == 0

    def test_first_request_loads(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader)
        snapshot = cache.get_snapshot()
        assert snapshot.timestamp == 1_000_000.0
        assert snapshot.office[0].full_name == "Jane Doe"
        assert cache.status == "active"
        assert cache.load_count == 1

    def test_unchanged_source_is_not_reparsed(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader)
        first = cache.get_snapshot()
        second = cache.get_snapshot()
        assert cache.load_count == 1
        assert reader.calls == 1
        assert second is first
        assert second.to_wire() == first.to_wire()

    def test_changed_source_is_reloaded(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader)
        first = cache.get_snapshot()

        _touch(source, 2_000)
        reader.sheets = SheetRows(people=[("IT", "1", "Dev", "Bob", "1", "2")], rooms=None)
        second = cache.get_snapshot()

        assert cache.load_count == 2
        assert second.timestamp == 2_000_000.0
        assert second.office[0].full_name == "Bob"
        assert second.cabinets == []
        assert first.office[0].full_name == "Jane Doe"   # old snapshot untouched

    def test_clear(self, source):
        cache = _make_cache(source, _StubReader())
        cache.get_snapshot()
        cache.clear()
        assert cache.status == "empty"
        cache.get_snapshot()
        assert cache.load_count == 2


class TestSingleFlight:
    def test_concurrent_misses_share_one_load(self, source):
        reader = _StubReader()
        reader.release.clear()
        cache = _make_cache(source, reader)

        results = []
        errors = []

        def worker():
            try:
                results.append(cache.get_snapshot())
            except Exception as e:  # pragma: no cover - surfaced by the assert below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()

        assert reader.entered.wait(timeout=5)
        time.sleep(0.05)
        reader.release.set()
        for t in threads:
            t.join(timeout=5)

        assert errors == []
        assert len(results) == 8
        assert reader.calls == 1
        assert cache.load_count == 1
        assert all(r is results[0] for r in results)

    def test_waiters_share_the_failure(self, source):
        reader = _StubReader()
        reader.release.clear()
        reader.error = SourceMalformedError("bad workbook")
        cache = _make_cache(source, reader)

        outcomes = []

        def worker():
            try:
                cache.get_snapshot()
                outcomes.append("ok")
            except SourceMalformedError:
                outcomes.append("error")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        assert reader.entered.wait(timeout=5)
        time.sleep(0.05)
        reader.release.set()
        for t in threads:
            t.join(timeout=5)

        assert len(outcomes) == 4
        assert set(outcomes) == {"error"}
        # Late arrivals may start a fresh attempt, but never one per thread.
        assert reader.calls < 4


class TestSourceAbsent:
    def test_absent_source_raises(self, tmp_path):
        cache = _make_cache(tmp_path / "missing.xlsx", _StubReader())
        with pytest.raises(SourceAbsentError):
            cache.get_snapshot()
        assert cache.status == "empty"
        assert cache.load_count == 0

    def test_absent_source_leaves_slot_untouched(self, source):
        cache = _make_cache(source, _StubReader())
        first = cache.get_snapshot()
        source.unlink()
        with pytest.raises(SourceAbsentError):
            cache.get_snapshot()
        assert cache.current is first
        assert cache.status == "active"


class TestReloadFailurePolicy:
    def test_discard_empties_slot(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader, ReloadFailurePolicy.DISCARD)
        cache.get_snapshot()

        _touch(source, 2_000)
        reader.error = SourceMalformedError("corrupt")
        with pytest.raises(SourceMalformedError):
            cache.get_snapshot()
        assert cache.status == "empty"

    def test_discard_recovers_when_source_is_fixed(self, source):
        reader = _StubReader()
        reader.error = SourceMalformedError("corrupt")
        cache = _make_cache(source, reader)
        with pytest.raises(SourceMalformedError):
            cache.get_snapshot()

        reader.error = None
        assert cache.get_snapshot().office[0].full_name == "Jane Doe"

    def test_preserve_serves_last_good_snapshot(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader, ReloadFailurePolicy.PRESERVE)
        first = cache.get_snapshot()

        _touch(source, 2_000)
        reader.error = SourceMalformedError("corrupt")
        assert cache.get_snapshot() is first
        assert cache.status == "active"

    def test_preserve_without_previous_snapshot_raises(self, source):
        reader = _StubReader()
        reader.error = SourceMalformedError("corrupt")
        cache = _make_cache(source, reader, ReloadFailurePolicy.PRESERVE)
        with pytest.raises(SourceMalformedError):
            cache.get_snapshot()

    def test_unexpected_reader_error_is_malformed(self, source):
        reader = _StubReader()
        reader.error = RuntimeError("boom")
        cache = _make_cache(source, reader)
        with pytest.raises(SourceMalformedError):
            cache.get_snapshot()
        assert cache.status == "empty"

    def test_preserve_does_not_reparse_unchanged_broken_source(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader, ReloadFailurePolicy.PRESERVE)
        first = cache.get_snapshot()

        _touch(source, 2_000)
        reader.error = SourceMalformedError("corrupt")
        for _ in range(3):
            assert cache.get_snapshot() is first
        assert cache.load_count == 2
        assert reader.calls == 2

    def test_preserve_retries_once_source_changes_again(self, source):
        reader = _StubReader()
        cache = _make_cache(source, reader, ReloadFailurePolicy.PRESERVE)
        cache.get_snapshot()

        _touch(source, 2_000)
        reader.error = SourceMalformedError("corrupt")
        cache.get_snapshot()

        _touch(source, 3_000)
        reader.error = None
        reader.sheets = SheetRows(people=[("IT", "1", "Dev", "Bob", "1", "2")], rooms=None)
        fixed = cache.get_snapshot()
        assert fixed.timestamp == 3_000_000.0
        assert fixed.office[0].full_name == "Bob"
        assert cache.get_snapshot() is fixed
        assert cache.load_count == 3
