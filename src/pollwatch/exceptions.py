"""Custom exceptions for the polling watcher package."""

from pathlib import Path
from typing import Optional


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class ListingError(WatcherError):
    """A watched path could not be enumerated."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class PathNotFoundError(ListingError):
    """Specified file or folder does not exist."""
    pass


class WatchedFileDeletedError(WatcherError):
    """A file or folder that was being watched has been deleted."""

    def __init__(self, path: Path):
        super().__init__(f"Watched file or folder deleted: {path}")
        self.path = path


class NothingAddedError(WatcherError):
    """Watcher was started without any files or folders to watch."""
    pass


class IntervalTooShortError(WatcherError):
    """Polling interval is below the configured minimum."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher is not running."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher is already running."""
    pass


class WatcherClosedError(WatcherError):
    """Watcher has been closed and cannot be reused."""
    pass
