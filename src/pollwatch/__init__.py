"""
Polling File Watcher Package

Detects changes to watched files and folders by listing them periodically
and diffing each listing against the previous one, so behaviour is the
same on every platform regardless of native change notification support.

Features:
- Recursive and non-recursive watching with ignore lists
- Change events: CREATE, REMOVE, WRITE, RENAME, CHMOD
- Rename detection via REMOVE+CREATE correlation
- Per-cycle event limit and event kind filtering
- On-demand scans and manually triggered events
- Regex and glob filter hooks
- Forwarding to watchdog event handlers
"""

from .models import (
    Op,
    WatcherState,
    FileRecord,
    SyntheticFile,
    FileInfo,
    WatchRoot,
    Event,
)

from .snapshot import Snapshot

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    ListingError,
    PathNotFoundError,
    WatchedFileDeletedError,
    NothingAddedError,
    IntervalTooShortError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
    WatcherClosedError,
)

from .filters import (
    FilterHook,
    regex_ignore_hook,
    regex_filter_hook,
    glob_ignore_hook,
)
from .lister import list_path, is_hidden
from .classifier import RenameCorrelator, classify, iter_changes
from .dispatcher import EventDispatcher
from .handlers import HandlerForwarder, to_watchdog_event
from .watcher import PollingWatcher


__all__ = [
    # Models
    "Op",
    "WatcherState",
    "FileRecord",
    "SyntheticFile",
    "FileInfo",
    "WatchRoot",
    "Event",
    "Snapshot",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "ListingError",
    "PathNotFoundError",
    "WatchedFileDeletedError",
    "NothingAddedError",
    "IntervalTooShortError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    "WatcherClosedError",
    # Components
    "FilterHook",
    "regex_ignore_hook",
    "regex_filter_hook",
    "glob_ignore_hook",
    "list_path",
    "is_hidden",
    "RenameCorrelator",
    "classify",
    "iter_changes",
    "EventDispatcher",
    "HandlerForwarder",
    "to_watchdog_event",
    # Main Watcher
    "PollingWatcher",
]

__version__ = "0.1.0"
