"""Data models for the polling watcher package."""

import os
import stat
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union


class Op(Enum):
    """Kinds of change reported by the watcher."""
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"

    def __str__(self) -> str:
        return self.name


class WatcherState(Enum):
    """Lifecycle states of a PollingWatcher."""
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata captured for one filesystem entry during a listing.

    Attributes:
        path: Full absolute path to the entry
        name: Base name of the entry
        size: Size in bytes
        mtime_ns: Modification time in nanoseconds
        mode: Full st_mode (type and permission bits)
        is_dir: Whether the entry is a directory
        identity: (device, inode) pair, or None if the platform has none
    """
    path: Path
    name: str
    size: int
    mtime_ns: int
    mode: int
    is_dir: bool = False
    identity: Optional[Tuple[int, int]] = None

    is_synthetic = False

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")

    @property
    def mtime(self) -> float:
        """Modification time in seconds."""
        return self.mtime_ns / 1e9

    @classmethod
    def from_stat(cls, path: Path, st: os.stat_result) -> "FileRecord":
        """Build a record from a stat result."""
        identity = (st.st_dev, st.st_ino) if st.st_ino else None
        return cls(
            path=path,
            name=path.name or str(path),
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
            mode=st.st_mode,
            is_dir=stat.S_ISDIR(st.st_mode),
            identity=identity,
        )


@dataclass(frozen=True)
class SyntheticFile:
    """Placeholder metadata for events injected with trigger_event."""
    path: Path = field(default_factory=lambda: Path("-"))
    name: str = "triggered event"
    size: int = 0
    mtime_ns: int = field(default_factory=time.time_ns)
    mode: int = 0
    is_dir: bool = False
    identity: Optional[Tuple[int, int]] = None

    is_synthetic = True

    @property
    def mtime(self) -> float:
        """Modification time in seconds."""
        return self.mtime_ns / 1e9


FileInfo = Union[FileRecord, SyntheticFile]


@dataclass(frozen=True)
class WatchRoot:
    """
    A file or folder registered with the watcher.

    Attributes:
        path: Absolute path that was added
        recursive: Whether the whole subtree is listed
        skip_hidden: Whether hidden entries are left out of listings
    """
    path: Path
    recursive: bool = False
    skip_hidden: bool = False

    def covers(self, path: Path) -> bool:
        """Check if a listing of this root can contain the given path."""
        if path == self.path:
            return True
        if self.recursive:
            return self.path in path.parents
        return path.parent == self.path


@dataclass(frozen=True)
class Event:
    """
    Represents one change detected between two snapshots.

    Attributes:
        op: The kind of change
        path: Full path of the affected entry (destination for RENAME)
        info: Metadata associated with the change
        old_path: For RENAME events, the previous full path
    """
    op: Op
    path: Path
    info: FileInfo
    old_path: Optional[Path] = None

    def __post_init__(self):
        if self.op is Op.RENAME and self.old_path is None:
            raise ValueError("RENAME events require old_path")
        if self.op is not Op.RENAME and self.old_path is not None:
            raise ValueError(f"old_path is only valid for RENAME, not {self.op}")

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def is_dir(self) -> bool:
        return self.info.is_dir

    def __str__(self) -> str:
        path_type = "DIRECTORY" if self.info.is_dir else "FILE"
        if self.op is Op.RENAME:
            location = f"{self.old_path} -> {self.path}"
        else:
            location = str(self.path)
        return f'{path_type} "{self.info.name}" {self.op} [{location}]'

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "op": self.op.value,
            "path": str(self.path),
            "old_path": str(self.old_path) if self.old_path else None,
            "name": self.info.name,
            "size": self.info.size,
            "mtime": self.info.mtime,
            "mode": self.info.mode,
            "is_directory": self.info.is_dir,
            "synthetic": self.info.is_synthetic,
        }
