"""Tests for classifier module."""

import stat
import threading
from pathlib import Path

import pytest

from src.pollwatch.classifier import RenameCorrelator, classify, iter_changes
from src.pollwatch.models import FileRecord, Op
from src.pollwatch.snapshot import EMPTY_SNAPSHOT, Snapshot


ROOT = Path("/watched")


def make_record(path, size=10, mtime_ns=1_000, mode=stat.S_IFREG | 0o644, is_dir=False, identity=None):
    if is_dir:
        mode = stat.S_IFDIR | 0o755
    return FileRecord(
        path=path,
        name=path.name,
        size=size,
        mtime_ns=mtime_ns,
        mode=mode,
        is_dir=is_dir,
        identity=identity,
    )


def snap(*records):
    return Snapshot.from_records(records)


def ops(events):
    return [(e.op, e.path) for e in events]


class TestRenameCorrelator:
    """Tests for RenameCorrelator class."""

    def test_same_metadata_is_same_file(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a.txt")
        new = make_record(ROOT / "b.txt")
        assert correlator.is_same_file(old, new) is True

    @pytest.mark.parametrize("field,value", [
        ("size", 11),
        ("mtime_ns", 2_000),
        ("mode", stat.S_IFREG | 0o600),
    ])
    def test_metadata_difference_is_not_same_file(self, field, value):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a.txt")
        new = make_record(ROOT / "b.txt", **{field: value})
        assert correlator.is_same_file(old, new) is False

    def test_file_and_directory_never_match(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a", is_dir=True)
        new = make_record(ROOT / "b", size=10, mtime_ns=1_000)
        assert correlator.is_same_file(old, new) is False

    def test_identity_overrides_metadata(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a.txt", identity=(1, 100))
        new = make_record(ROOT / "b.txt", mode=stat.S_IFREG | 0o600, identity=(1, 100))
        assert correlator.is_same_file(old, new) is True

    def test_different_identity_is_not_same_file(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a.txt", identity=(1, 100))
        new = make_record(ROOT / "b.txt", identity=(1, 200))
        assert correlator.is_same_file(old, new) is False

    def test_heuristic_when_identity_missing_on_one_side(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "a.txt", identity=(1, 100))
        new = make_record(ROOT / "b.txt")
        assert correlator.is_same_file(old, new) is True

    def test_identity_disabled(self):
        correlator = RenameCorrelator(use_identity=False)
        old = make_record(ROOT / "a.txt", identity=(1, 100))
        new = make_record(ROOT / "b.txt", identity=(1, 200))
        assert correlator.is_same_file(old, new) is True

    def test_correlate_requires_same_parent(self):
        correlator = RenameCorrelator()
        old = make_record(ROOT / "x" / "a.txt")
        new = make_record(ROOT / "y" / "a.txt")
        assert correlator.correlate([new], [old]) == []

    def test_correlate_first_match_wins(self):
        correlator = RenameCorrelator()
        old1 = make_record(ROOT / "a.txt")
        old2 = make_record(ROOT / "b.txt")
        new1 = make_record(ROOT / "c.txt")
        new2 = make_record(ROOT / "d.txt")

        pairs = correlator.correlate([new1, new2], [old1, old2])

        assert pairs == [(old1, new1), (old2, new2)]


class TestClassify:
    """Tests for classify and iter_changes."""

    def test_identical_snapshots_yield_nothing(self):
        snapshot = snap(
            make_record(ROOT, is_dir=True),
            make_record(ROOT / "a.txt"),
            make_record(ROOT / "b.txt", size=3),
        )
        assert classify(snapshot, snapshot) == []

    def test_empty_snapshots_yield_nothing(self):
        assert classify(EMPTY_SNAPSHOT, EMPTY_SNAPSHOT) == []

    def test_creates_and_removes(self):
        previous = snap(make_record(ROOT / "old.txt", size=1, mtime_ns=1))
        current = snap(make_record(ROOT / "new.txt", size=2, mtime_ns=2))

        events = classify(previous, current)

        assert ops(events) == [
            (Op.CREATE, ROOT / "new.txt"),
            (Op.REMOVE, ROOT / "old.txt"),
        ]
        assert all(e.old_path is None for e in events)

    def test_remove_carries_previous_record(self):
        record = make_record(ROOT / "old.txt", size=99)
        events = classify(snap(record), EMPTY_SNAPSHOT)
        assert events[0].info is record

    def test_write_on_mtime_change(self):
        previous = snap(make_record(ROOT / "a.txt", mtime_ns=1_000))
        current = snap(make_record(ROOT / "a.txt", mtime_ns=2_000))

        events = classify(previous, current)

        assert ops(events) == [(Op.WRITE, ROOT / "a.txt")]
        assert events[0].info.mtime_ns == 2_000

    def test_no_write_for_directories(self):
        previous = snap(make_record(ROOT / "sub", is_dir=True, mtime_ns=1_000))
        current = snap(make_record(ROOT / "sub", is_dir=True, mtime_ns=2_000))
        assert classify(previous, current) == []

    def test_size_change_alone_is_not_a_write(self):
        previous = snap(make_record(ROOT / "a.txt", size=1))
        current = snap(make_record(ROOT / "a.txt", size=2))
        assert classify(previous, current) == []

    def test_chmod_only(self):
        previous = snap(make_record(ROOT / "a.txt", mode=stat.S_IFREG | 0o644))
        current = snap(make_record(ROOT / "a.txt", mode=stat.S_IFREG | 0o600))

        assert ops(classify(previous, current)) == [(Op.CHMOD, ROOT / "a.txt")]

    def test_write_and_chmod_together(self):
        previous = snap(make_record(ROOT / "a.txt", mtime_ns=1, mode=stat.S_IFREG | 0o644))
        current = snap(make_record(ROOT / "a.txt", mtime_ns=2, mode=stat.S_IFREG | 0o600))

        assert ops(classify(previous, current)) == [
            (Op.WRITE, ROOT / "a.txt"),
            (Op.CHMOD, ROOT / "a.txt"),
        ]

    def test_rename_heuristic(self):
        previous = snap(make_record(ROOT / "a.txt"))
        current = snap(make_record(ROOT / "b.txt"))

        events = classify(previous, current)

        assert len(events) == 1
        assert events[0].op is Op.RENAME
        assert events[0].old_path == ROOT / "a.txt"
        assert events[0].path == ROOT / "b.txt"

    def test_rename_directory(self):
        previous = snap(make_record(ROOT / "old", is_dir=True))
        current = snap(make_record(ROOT / "new", is_dir=True))

        events = classify(previous, current)

        assert [(e.op, e.old_path, e.path) for e in events] == [
            (Op.RENAME, ROOT / "old", ROOT / "new"),
        ]

    def test_rename_across_folders_is_create_and_remove(self):
        previous = snap(make_record(ROOT / "x" / "a.txt"))
        current = snap(make_record(ROOT / "y" / "a.txt"))

        assert ops(classify(previous, current)) == [
            (Op.CREATE, ROOT / "y" / "a.txt"),
            (Op.REMOVE, ROOT / "x" / "a.txt"),
        ]

    def test_rename_with_identity_and_mode_change(self):
        previous = snap(make_record(ROOT / "a.txt", mode=stat.S_IFREG | 0o644, identity=(1, 7)))
        current = snap(make_record(ROOT / "b.txt", mode=stat.S_IFREG | 0o600, identity=(1, 7)))

        events = classify(previous, current)

        assert ops(events) == [
            (Op.RENAME, ROOT / "b.txt"),
            (Op.CHMOD, ROOT / "a.txt"),
        ]
        assert events[1].old_path is None

    def test_renames_come_first(self):
        previous = snap(
            make_record(ROOT / "a.txt", size=1),
            make_record(ROOT / "gone.txt", size=50),
            make_record(ROOT / "w.txt", mtime_ns=1),
        )
        current = snap(
            make_record(ROOT / "z.txt", size=1),
            make_record(ROOT / "fresh.txt", size=70),
            make_record(ROOT / "w.txt", mtime_ns=5),
        )

        assert ops(classify(previous, current)) == [
            (Op.RENAME, ROOT / "z.txt"),
            (Op.CREATE, ROOT / "fresh.txt"),
            (Op.REMOVE, ROOT / "gone.txt"),
            (Op.WRITE, ROOT / "w.txt"),
        ]

    def test_deterministic(self):
        previous = snap(*(make_record(ROOT / f"old{i}.txt", size=i) for i in range(5)))
        current = snap(*(make_record(ROOT / f"new{i}.txt", size=i + 100) for i in range(5)))

        first = classify(previous, current)
        second = classify(previous, current)

        assert ops(first) == ops(second)

    def test_iter_changes_stops_when_cancelled(self):
        previous = EMPTY_SNAPSHOT
        current = snap(*(make_record(ROOT / f"f{i}.txt", size=i) for i in range(5)))
        cancel = threading.Event()

        received = []
        for event in iter_changes(previous, current, cancel):
            received.append(event)
            if len(received) == 2:
                cancel.set()

        assert len(received) == 2
