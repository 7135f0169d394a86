"""Directory listing that produces snapshots of watched paths."""

import logging
import os
import stat
from pathlib import Path
from typing import AbstractSet, Dict, List, Optional, Sequence

from .exceptions import ListingError, PathNotFoundError
from .filters import FilterHook
from .models import FileRecord
from .snapshot import Snapshot


logger = logging.getLogger(__name__)


def is_hidden(path: Path, st: Optional[os.stat_result] = None) -> bool:
    """
    Check if a filesystem entry is hidden.

    On Windows this reads the hidden attribute bit; elsewhere a leading dot
    in the base name marks the entry as hidden.

    Args:
        path: Path of the entry
        st: Stat result for the entry, fetched with lstat when omitted

    Returns:
        True if the entry is hidden
    """
    if os.name == "nt":
        if st is None:
            st = os.lstat(path)
        attributes = getattr(st, "st_file_attributes", 0)
        return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)
    return path.name.startswith(".")


def list_path(
    root: Path,
    recursive: bool = False,
    ignored: AbstractSet[Path] = frozenset(),
    skip_hidden: bool = False,
    hooks: Sequence[FilterHook] = (),
) -> Snapshot:
    """
    List a file or folder into a snapshot.

    The root itself is always part of the result unless it is ignored or
    hidden. For a folder, its immediate children are added, or the whole
    subtree when recursive is set. Ignored, hidden and hook-rejected
    folders are not descended into.

    Args:
        root: Absolute path to list
        recursive: Whether to walk the full subtree
        ignored: Absolute paths to leave out
        skip_hidden: Whether to leave out hidden entries
        hooks: Filter hooks applied to every entry below the root

    Returns:
        Snapshot of the listed entries

    Raises:
        PathNotFoundError: If root does not exist
        ListingError: If root or one of its folders cannot be read
    """
    root = Path(root)
    if root in ignored:
        return Snapshot()

    try:
        root_stat = os.stat(root)
    except FileNotFoundError as e:
        raise PathNotFoundError(f"Path does not exist: {root}", root) from e
    except OSError as e:
        raise ListingError(f"Cannot stat {root}: {e}", root) from e

    if skip_hidden and is_hidden(root, root_stat):
        return Snapshot()

    record = FileRecord.from_stat(root, root_stat)
    records: Dict[Path, FileRecord] = {root: record}
    if record.is_dir:
        _list_children(root, records, recursive, ignored, skip_hidden, hooks)

    logger.debug("Listed %d entries under %s", len(records), root)
    return Snapshot(records)


def _list_children(
    root: Path,
    records: Dict[Path, FileRecord],
    recursive: bool,
    ignored: AbstractSet[Path],
    skip_hidden: bool,
    hooks: Sequence[FilterHook],
) -> None:
    pending: List[Path] = [root]

    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except FileNotFoundError as e:
            if directory == root:
                raise PathNotFoundError(f"Path does not exist: {root}", root) from e
            # Removed while walking; the next cycle reports it.
            continue
        except OSError as e:
            raise ListingError(f"Cannot list {directory}: {e}", directory) from e

        for entry in entries:
            path = directory / entry.name
            if path in ignored:
                continue

            try:
                st = entry.stat(follow_symlinks=False)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise ListingError(f"Cannot stat {path}: {e}", path) from e

            if skip_hidden and is_hidden(path, st):
                continue

            record = FileRecord.from_stat(path, st)
            if any(hook(record) for hook in hooks):
                continue

            records[path] = record
            if recursive and record.is_dir:
                pending.append(path)
