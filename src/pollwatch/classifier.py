"""Snapshot diffing with rename correlation."""

import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .models import Event, FileRecord, Op
from .snapshot import Snapshot


class RenameCorrelator:
    """
    Correlates removed and created entries to detect renames.

    Only entries in the same parent folder are paired. When both records
    carry an identity token (device and inode), equal tokens decide the
    match. Otherwise the entries must agree on size, modification time and
    mode. Two unrelated files with identical metadata that are removed and
    created in the same cycle are indistinguishable from a rename.
    """

    def __init__(self, use_identity: bool = True):
        """
        Initialize the rename correlator.

        Args:
            use_identity: Prefer identity tokens over the metadata heuristic
        """
        self.use_identity = use_identity

    def is_same_file(self, old: FileRecord, new: FileRecord) -> bool:
        """
        Check if a removed and a created record describe the same file.

        Args:
            old: Record from the previous snapshot
            new: Record from the current snapshot

        Returns:
            True if the pair should be reported as a rename
        """
        if old.is_dir != new.is_dir:
            return False
        if self.use_identity and old.identity is not None and new.identity is not None:
            return old.identity == new.identity
        return (
            old.size == new.size
            and old.mtime_ns == new.mtime_ns
            and old.mode == new.mode
        )

    def correlate(
        self,
        created: List[FileRecord],
        removed: List[FileRecord],
    ) -> List[Tuple[FileRecord, FileRecord]]:
        """
        Pair created entries with removed entries.

        Each created entry takes the first unclaimed removed entry that
        matches, in the order the lists are given.

        Args:
            created: Records present only in the current snapshot
            removed: Records present only in the previous snapshot

        Returns:
            List of (old, new) record pairs
        """
        removed_by_parent: Dict[Path, List[FileRecord]] = defaultdict(list)
        for record in removed:
            removed_by_parent[record.path.parent].append(record)

        pairs = []
        for new in created:
            candidates = removed_by_parent.get(new.path.parent)
            if not candidates:
                continue
            for i, old in enumerate(candidates):
                if self.is_same_file(old, new):
                    candidates.pop(i)
                    pairs.append((old, new))
                    break
        return pairs


def iter_changes(
    previous: Snapshot,
    current: Snapshot,
    cancel: Optional[threading.Event] = None,
    correlator: Optional[RenameCorrelator] = None,
) -> Iterator[Event]:
    """
    Lazily classify the differences between two snapshots.

    Renames come first, each followed by a CHMOD against the old path when
    the mode changed along the way. Then come creates, removes, and finally
    writes and chmods for paths present in both snapshots. Paths are visited
    in sorted order so the output is deterministic.

    Args:
        previous: Baseline snapshot
        current: Newly listed snapshot
        cancel: Stops the generator once set
        correlator: Rename correlator to use

    Yields:
        Event objects
    """
    correlator = correlator or RenameCorrelator()

    def cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    created = [current[p] for p in current.sorted_paths() if p not in previous]
    removed = [previous[p] for p in previous.sorted_paths() if p not in current]

    renamed_from = set()
    renamed_to = set()
    for old, new in correlator.correlate(created, removed):
        if cancelled():
            return
        renamed_from.add(old.path)
        renamed_to.add(new.path)
        yield Event(Op.RENAME, new.path, new, old_path=old.path)
        if old.mode != new.mode:
            if cancelled():
                return
            yield Event(Op.CHMOD, old.path, new)

    for record in created:
        if record.path in renamed_to:
            continue
        if cancelled():
            return
        yield Event(Op.CREATE, record.path, record)

    for record in removed:
        if record.path in renamed_from:
            continue
        if cancelled():
            return
        yield Event(Op.REMOVE, record.path, record)

    for path in current.sorted_paths():
        old = previous.get(path)
        if old is None:
            continue
        new = current[path]
        if not new.is_dir and new.mtime_ns != old.mtime_ns:
            if cancelled():
                return
            yield Event(Op.WRITE, path, new)
        if new.mode != old.mode:
            if cancelled():
                return
            yield Event(Op.CHMOD, path, new)


def classify(
    previous: Snapshot,
    current: Snapshot,
    correlator: Optional[RenameCorrelator] = None,
) -> List[Event]:
    """Classify all differences between two snapshots into events."""
    return list(iter_changes(previous, current, correlator=correlator))
