"""Bridge that feeds polled events to watchdog event handlers."""

import logging
import queue
import threading
from typing import Optional

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)

from .models import Event, Op


logger = logging.getLogger(__name__)

_FILE_EVENTS = {
    Op.CREATE: FileCreatedEvent,
    Op.REMOVE: FileDeletedEvent,
    Op.WRITE: FileModifiedEvent,
    Op.CHMOD: FileModifiedEvent,
}

_DIR_EVENTS = {
    Op.CREATE: DirCreatedEvent,
    Op.REMOVE: DirDeletedEvent,
    Op.WRITE: DirModifiedEvent,
    Op.CHMOD: DirModifiedEvent,
}


def to_watchdog_event(event: Event) -> Optional[FileSystemEvent]:
    """
    Convert a polled event into the equivalent watchdog event.

    Watchdog has no permission-change event, so CHMOD becomes a modified
    event like inotify attribute changes do.

    Args:
        event: Event produced by the watcher

    Returns:
        A watchdog event, or None for manually triggered events
    """
    if event.info.is_synthetic:
        return None

    if event.op is Op.RENAME:
        moved_cls = DirMovedEvent if event.is_dir else FileMovedEvent
        return moved_cls(str(event.old_path), str(event.path))

    table = _DIR_EVENTS if event.is_dir else _FILE_EVENTS
    return table[event.op](str(event.path))


class HandlerForwarder:
    """
    Drains a watcher's event queue into a watchdog FileSystemEventHandler.

    Lets handlers written for watchdog observers run on top of the
    polling watcher unchanged.
    """

    def __init__(self, watcher, handler: FileSystemEventHandler, poll_timeout: float = 0.1):
        """
        Initialize the forwarder.

        Args:
            watcher: PollingWatcher whose events are forwarded
            handler: Watchdog handler receiving the converted events
            poll_timeout: Seconds to wait for an event before re-checking for shutdown
        """
        self.watcher = watcher
        self.handler = handler
        self.poll_timeout = poll_timeout
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start forwarding in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="HandlerForwarder", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop forwarding and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self.watcher.events.get(timeout=self.poll_timeout)
            except queue.Empty:
                if self.watcher.closed.is_set():
                    break
                continue

            fs_event = to_watchdog_event(event)
            if fs_event is None:
                continue
            try:
                self.handler.dispatch(fs_event)
            except Exception as e:
                logger.error("Handler failed for %s: %s", event, e, exc_info=True)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
