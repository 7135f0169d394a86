"""Immutable path-to-metadata snapshots."""

from collections.abc import Mapping
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Optional

from .models import FileRecord, WatchRoot


class Snapshot(Mapping):
    """
    Point-in-time mapping of absolute paths to FileRecords.

    A snapshot never changes after construction, so it can be handed out
    to callers without copying. Derived snapshots are built with merge,
    restrict and without.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Optional[Dict[Path, FileRecord]] = None):
        self._records: Dict[Path, FileRecord] = dict(records or {})

    @classmethod
    def from_records(cls, records: Iterable[FileRecord]) -> "Snapshot":
        """Build a snapshot keyed by each record's path."""
        return cls({record.path: record for record in records})

    def __getitem__(self, path: Path) -> FileRecord:
        return self._records[path]

    def __iter__(self) -> Iterator[Path]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __repr__(self) -> str:
        return f"Snapshot({len(self._records)} entries)"

    def merge(self, *others: "Snapshot") -> "Snapshot":
        """Combine snapshots; entries from later snapshots win on collision."""
        records = dict(self._records)
        for other in others:
            records.update(other._records)
        return Snapshot(records)

    def restrict(self, predicate: Callable[[Path], bool]) -> "Snapshot":
        """Keep only the entries whose path satisfies the predicate."""
        return Snapshot({p: r for p, r in self._records.items() if predicate(p)})

    def without(self, predicate: Callable[[Path], bool]) -> "Snapshot":
        """Drop the entries whose path satisfies the predicate."""
        return Snapshot({p: r for p, r in self._records.items() if not predicate(p)})

    def covered_by(self, root: WatchRoot) -> "Snapshot":
        """Entries that a listing of the given root would contain."""
        return self.restrict(root.covers)

    def sorted_paths(self) -> list:
        """Paths in a stable order, used for deterministic diffing."""
        return sorted(self._records, key=str)


EMPTY_SNAPSHOT = Snapshot()


def is_at_or_below(path: Path, ancestor: Path) -> bool:
    """Check if path equals ancestor or lies somewhere beneath it."""
    return path == ancestor or ancestor in path.parents
