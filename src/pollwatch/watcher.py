"""Polling watcher: the control loop that lists, diffs and dispatches."""

import logging
import os
import queue
import threading
from dataclasses import dataclass, field, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Union

from .classifier import RenameCorrelator, iter_changes
from .config import WatcherConfig
from .dispatcher import EventDispatcher
from .exceptions import (
    IntervalTooShortError,
    ListingError,
    NothingAddedError,
    PathNotFoundError,
    WatchedFileDeletedError,
    WatcherAlreadyRunningError,
    WatcherClosedError,
    WatcherNotRunningError,
)
from .filters import FilterHook, glob_ignore_hook
from .lister import list_path
from .models import Event, FileInfo, Op, SyntheticFile, WatcherState, WatchRoot
from .snapshot import EMPTY_SNAPSHOT, Snapshot, is_at_or_below


logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
Interval = Union[float, int, timedelta]


@dataclass
class _ScanRequest:
    done: threading.Event = field(default_factory=threading.Event)
    completed: bool = False


def _absolute(path: PathLike) -> Path:
    return Path(os.path.abspath(os.fspath(path)))


class PollingWatcher:
    """
    Watches files and folders by listing them periodically.

    Each cycle lists every watched root, diffs the result against the
    previous cycle's snapshot and puts the resulting events on the events
    queue. Listing failures go to the errors queue. All shared state is
    guarded by a single lock that is never held across filesystem calls
    or queue puts.

    Example:
        watcher = PollingWatcher()
        watcher.add_recursive("/data")
        watcher.start_async(0.5)
        event = watcher.events.get()
    """

    def __init__(self, config: Optional[WatcherConfig] = None):
        """
        Initialize the watcher.

        Args:
            config: Watcher configuration
        """
        self.config = config or WatcherConfig()

        self.events: "queue.Queue[Event]" = queue.Queue(maxsize=self.config.event_queue_size)
        self.errors: "queue.Queue[Exception]" = queue.Queue(maxsize=self.config.error_queue_size)
        self.closed = threading.Event()

        # _lock protects everything below.
        self._lock = threading.Lock()
        self._state = WatcherState.IDLE
        self._roots: Dict[Path, WatchRoot] = {}
        self._ignored: Set[Path] = set()
        self._previous: Snapshot = EMPTY_SNAPSHOT
        self._hooks: List[FilterHook] = []
        self._ignore_hidden = self.config.ignore_hidden
        self._default_hidden: Set[Path] = set()
        self._max_events = self.config.max_events
        self._ops: FrozenSet[Op] = frozenset()
        self._scan_requests: List[_ScanRequest] = []
        self._cycle_cancel: Optional[threading.Event] = None

        if self.config.ignore_patterns:
            self._hooks.append(glob_ignore_hook(self.config.ignore_patterns))

        self._correlator = RenameCorrelator()
        self._close_event = threading.Event()
        self._wake = threading.Event()
        self._started = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Watch list management
    # ------------------------------------------------------------------

    def add(
        self,
        path: PathLike,
        recursive: bool = False,
        ignore_hidden: Optional[bool] = None,
    ) -> None:
        """
        Add a file or folder to watch.

        A folder is watched together with its immediate children, or its
        whole subtree when recursive is set. The path is listed right away
        so that the first cycle has a baseline to compare against. Entries
        that another root already covers are left out of that baseline, so
        a change under an overlapping root is still reported.

        Args:
            path: File or folder to watch
            recursive: Whether to watch the whole subtree
            ignore_hidden: Skip hidden entries; defaults to ignore_hidden_files()

        Raises:
            PathNotFoundError: If the path does not exist
            ListingError: If the path cannot be listed
            WatcherClosedError: If the watcher has been closed
        """
        path = _absolute(path)

        with self._lock:
            self._ensure_open()
            if any(is_at_or_below(path, ignored) for ignored in self._ignored):
                logger.debug("Not watching ignored path: %s", path)
                return
            skip_hidden = self._ignore_hidden if ignore_hidden is None else ignore_hidden
            ignored = frozenset(self._ignored)
            hooks = tuple(self._hooks)

        root = WatchRoot(path=path, recursive=recursive, skip_hidden=skip_hidden)
        snapshot = list_path(path, recursive, ignored, skip_hidden, hooks)

        with self._lock:
            self._ensure_open()
            # Entries already known, or owed to another root's next cycle,
            # must not become part of the baseline.
            others = [r for p, r in self._roots.items() if p != path]
            baseline = snapshot.without(
                lambda p: p in self._previous or any(r.covers(p) for r in others)
            )

            replaced = self._roots.get(path)
            self._roots[path] = root
            if ignore_hidden is None:
                self._default_hidden.add(path)
            else:
                self._default_hidden.discard(path)
            if replaced is not None and replaced != root:
                self._drop_uncovered()
            self._previous = self._previous.merge(baseline)

        logger.info("Watching %s (%d entries, recursive=%s)", path, len(snapshot), recursive)

    def add_recursive(self, path: PathLike) -> None:
        """Add a file or folder and its whole subtree to watch."""
        self.add(path, recursive=True)

    def remove(self, path: PathLike) -> None:
        """
        Stop watching a file or folder that was added.

        Entries no longer covered by any remaining root are dropped from
        the snapshot. Removing a path that was never added does nothing.

        Args:
            path: Path previously passed to add()
        """
        path = _absolute(path)
        with self._lock:
            if self._roots.pop(path, None) is not None:
                self._drop_uncovered()

    def remove_recursive(self, path: PathLike) -> None:
        """
        Stop watching a path and every added root below it.

        Args:
            path: Folder whose watched roots should all be removed
        """
        path = _absolute(path)
        with self._lock:
            self._remove_roots_below(path)

    def ignore(self, *paths: PathLike) -> None:
        """
        Exclude paths from watching.

        Paths that are already watched, and everything below them, are
        removed from the watch list and the snapshot.

        Args:
            paths: Files or folders to ignore
        """
        for raw in paths:
            path = _absolute(raw)
            with self._lock:
                self._remove_roots_below(path)
                self._ignored.add(path)
                self._previous = self._previous.without(
                    lambda p, ignored=path: is_at_or_below(p, ignored)
                )
            logger.debug("Ignoring %s", path)

    def ignore_hidden_files(self, ignore: bool) -> None:
        """
        Set whether hidden entries are skipped.

        Applies to roots added later and to every watched root that was
        added without an explicit ignore_hidden. The change shows up from
        the next cycle on.
        """
        with self._lock:
            self._ignore_hidden = ignore
            for path in self._default_hidden & self._roots.keys():
                self._roots[path] = replace(self._roots[path], skip_hidden=ignore)

    def add_filter_hook(self, hook: FilterHook) -> None:
        """Register a hook that can leave entries out of every listing."""
        with self._lock:
            self._hooks.append(hook)

    def set_max_events(self, amount: int) -> None:
        """
        Limit the events delivered per cycle.

        Args:
            amount: Maximum events per cycle; less than 1 means no limit
        """
        with self._lock:
            self._max_events = max(amount, 0)

    def set_filter_ops(self, *ops: Op) -> None:
        """Deliver only the given kinds of event; no arguments delivers all."""
        with self._lock:
            self._ops = frozenset(ops)

    def watched_files(self) -> Snapshot:
        """
        Get the snapshot the next cycle compares against.

        Returns:
            Immutable snapshot of watched paths
        """
        with self._lock:
            return self._previous

    def roots(self) -> List[WatchRoot]:
        """Get the currently watched roots."""
        with self._lock:
            return list(self._roots.values())

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self.state is WatcherState.RUNNING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, interval: Optional[Interval] = None) -> None:
        """
        Start polling (blocking).

        Runs a cycle immediately and then every interval until close()
        is called.

        Args:
            interval: Seconds (or a timedelta) between cycles;
                defaults to config.poll_interval

        Raises:
            IntervalTooShortError: If interval is below config.min_poll_interval
            WatcherClosedError: If the watcher has been closed
            WatcherAlreadyRunningError: If already running
            NothingAddedError: If nothing has been added
        """
        seconds = self._begin(interval)
        try:
            self._poll_loop(seconds)
        except KeyboardInterrupt:
            logger.info("Watcher interrupted by user")
        finally:
            self._finish()

    def start_async(self, interval: Optional[Interval] = None) -> threading.Thread:
        """
        Start polling in a background thread.

        Validation happens before returning, so the same errors as start()
        are raised synchronously.

        Returns:
            The polling thread
        """
        seconds = self._begin(interval)

        def run():
            try:
                self._poll_loop(seconds)
            finally:
                self._finish()

        thread = threading.Thread(target=run, name="PollingWatcher", daemon=True)
        self._thread = thread
        thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until start() has finished its setup.

        Returns:
            True once started (or closed), False on timeout
        """
        return self._started.wait(timeout)

    def scan_now(self) -> None:
        """
        Run a cycle immediately and wait for its events to be dispatched.

        Raises:
            WatcherNotRunningError: If the watcher is not running
            WatcherClosedError: If the watcher closed before the cycle ran
        """
        request = _ScanRequest()
        with self._lock:
            if self._state is not WatcherState.RUNNING:
                raise WatcherNotRunningError("Watcher is not running")
            self._scan_requests.append(request)
            self._wake.set()

        request.done.wait()
        if not request.completed:
            raise WatcherClosedError("Watcher closed before the scan completed")

    def trigger_event(self, op: Op, info: Optional[FileInfo] = None) -> bool:
        """
        Put a manually constructed event on the events queue.

        Blocks while the queue is full, until the event is queued or the
        watcher is closed.

        Args:
            op: Kind of event
            info: Metadata for the event; a SyntheticFile when omitted

        Returns:
            True if the event was queued, False if the watcher closed first

        Raises:
            WatcherClosedError: If the watcher has been closed
        """
        with self._lock:
            self._ensure_open()

        info = info if info is not None else SyntheticFile()
        old_path = info.path if op is Op.RENAME else None
        event = Event(op, info.path, info, old_path=old_path)
        dispatcher = EventDispatcher(self.events, send_timeout=self.config.send_timeout)
        return dispatcher.send(event, self._close_event)

    def close(self) -> None:
        """
        Stop the watcher and clear its watch list.

        Cancels any in-flight dispatch, releases scan_now() callers and
        waits for a background polling thread. Calling close() again does
        nothing.
        """
        with self._lock:
            if self._state is WatcherState.CLOSED:
                return
            was_running = self._state is WatcherState.RUNNING
            self._state = WatcherState.CLOSED
            self._roots.clear()
            self._previous = EMPTY_SNAPSHOT
            requests = self._scan_requests
            self._scan_requests = []
            if self._cycle_cancel is not None:
                self._cycle_cancel.set()
            self._close_event.set()
            self._wake.set()

        for request in requests:
            request.done.set()
        self._started.set()

        if not was_running:
            self.closed.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.close_timeout)

        logger.info("Watcher closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def _begin(self, interval: Optional[Interval]) -> float:
        if interval is None:
            interval = self.config.poll_interval
        if isinstance(interval, timedelta):
            interval = interval.total_seconds()
        if interval < self.config.min_poll_interval:
            raise IntervalTooShortError(
                f"Interval {interval}s is shorter than {self.config.min_poll_interval}s"
            )

        with self._lock:
            if self._state is WatcherState.CLOSED:
                raise WatcherClosedError("Watcher has been closed")
            if self._state is WatcherState.RUNNING:
                raise WatcherAlreadyRunningError("Watcher is already running")
            if not self._roots:
                raise NothingAddedError("No files or folders added to watch")
            self._state = WatcherState.RUNNING
            root_count = len(self._roots)

        self._started.set()
        logger.info("Polling %d root(s) every %.3fs", root_count, interval)
        return float(interval)

    def _finish(self) -> None:
        self.close()
        self.closed.set()

    def _poll_loop(self, interval: float) -> None:
        while not self._close_event.is_set():
            with self._lock:
                requests = self._scan_requests
                self._scan_requests = []
                self._wake.clear()

            committed = False
            try:
                committed = self._run_cycle()
            except Exception as e:
                logger.error("Polling cycle failed: %s", e, exc_info=True)
                self._report(e)
            finally:
                for request in requests:
                    request.completed = committed
                    request.done.set()

            self._wake.wait(timeout=interval)

    def _run_cycle(self) -> bool:
        """Run one list, diff, dispatch and commit pass."""
        with self._lock:
            if self._state is not WatcherState.RUNNING:
                return False
            roots = list(self._roots.values())
            ignored = frozenset(self._ignored)
            hooks = tuple(self._hooks)
            previous = self._previous
            dispatcher = EventDispatcher(
                self.events,
                max_events=self._max_events,
                ops=self._ops,
                send_timeout=self.config.send_timeout,
            )
            cancel = threading.Event()
            self._cycle_cancel = cancel

        current = self._retrieve_file_list(roots, ignored, hooks)
        changes = iter_changes(previous, current, cancel, self._correlator)
        delivered = dispatcher.dispatch(changes, cancel)

        with self._lock:
            self._cycle_cancel = None
            if self._state is not WatcherState.RUNNING:
                return False
            self._previous = self._reconcile(current, roots, ignored)

        logger.debug("Cycle complete: %d entries, %d event(s)", len(current), delivered)
        return True

    def _retrieve_file_list(
        self,
        roots: Sequence[WatchRoot],
        ignored: FrozenSet[Path],
        hooks: Sequence[FilterHook],
    ) -> Snapshot:
        """List every root and merge the results; later roots win on collision."""
        snapshots = []
        for root in roots:
            try:
                snapshots.append(
                    list_path(root.path, root.recursive, ignored, root.skip_hidden, hooks)
                )
            except PathNotFoundError:
                logger.warning("Watched path deleted: %s", root.path)
                with self._lock:
                    if self._roots.get(root.path) == root:
                        del self._roots[root.path]
                self._report(WatchedFileDeletedError(root.path))
            except ListingError as e:
                # The root contributes nothing this cycle.
                logger.warning("Failed to list %s: %s", root.path, e)
                self._report(e)
        return EMPTY_SNAPSHOT.merge(*snapshots)

    def _reconcile(
        self,
        current: Snapshot,
        cycle_roots: Sequence[WatchRoot],
        cycle_ignored: FrozenSet[Path],
    ) -> Snapshot:
        """Fold watch list changes made during a cycle into its snapshot. Lock held."""
        listed = {root.path: root for root in cycle_roots}
        added = [root for path, root in self._roots.items() if listed.get(path) != root]
        dropped = any(path not in self._roots for path in listed)

        snapshot = current
        if added or dropped:
            snapshot = snapshot.restrict(self._is_covered)
            snapshot = snapshot.merge(*(self._previous.covered_by(root) for root in added))

        new_ignores = self._ignored - cycle_ignored
        if new_ignores:
            snapshot = snapshot.without(
                lambda p: any(is_at_or_below(p, ignored) for ignored in new_ignores)
            )
        return snapshot

    # ------------------------------------------------------------------
    # Helpers (lock held unless noted)
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._state is WatcherState.CLOSED:
            raise WatcherClosedError("Watcher has been closed")

    def _is_covered(self, path: Path) -> bool:
        return any(root.covers(path) for root in self._roots.values())

    def _drop_uncovered(self) -> None:
        self._previous = self._previous.restrict(self._is_covered)

    def _remove_roots_below(self, path: Path) -> None:
        doomed = [p for p in self._roots if is_at_or_below(p, path)]
        for p in doomed:
            del self._roots[p]
        if doomed:
            self._drop_uncovered()

    def _report(self, error: Exception) -> None:
        """Post an error to the errors queue. Lock not held."""
        try:
            self.errors.put_nowait(error)
        except queue.Full:
            logger.error("Error queue full, dropping: %s", error)
