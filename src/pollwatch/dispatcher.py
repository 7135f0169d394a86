"""Cancellable delivery of events to the outbound queue."""

import logging
import queue
import threading
from typing import AbstractSet, Iterable, Optional

from .models import Event, Op


logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Delivers events one at a time to a queue.

    A put on a full queue is retried in short slices so that a consumer
    which stopped reading never blocks the sender past cancellation.
    """

    def __init__(
        self,
        event_queue: "queue.Queue[Event]",
        max_events: int = 0,
        ops: Optional[AbstractSet[Op]] = None,
        send_timeout: float = 0.05,
    ):
        """
        Initialize the dispatcher.

        Args:
            event_queue: Queue that consumers read events from
            max_events: Maximum events delivered per dispatch (0 = unlimited)
            ops: If non-empty, only these kinds of event are delivered
            send_timeout: Seconds each blocked put waits before re-checking cancellation
        """
        self.event_queue = event_queue
        self.max_events = max_events
        self.ops = frozenset(ops or ())
        self.send_timeout = send_timeout

    def accepts(self, event: Event) -> bool:
        """Check if an event passes the kind filter."""
        return not self.ops or event.op in self.ops

    def send(self, event: Event, cancel: threading.Event) -> bool:
        """
        Put a single event on the queue.

        Args:
            event: Event to deliver
            cancel: Abandons the send once set

        Returns:
            True if the event was queued, False if cancelled first
        """
        while not cancel.is_set():
            try:
                self.event_queue.put(event, timeout=self.send_timeout)
                return True
            except queue.Full:
                continue
        return False

    def dispatch(self, events: Iterable[Event], cancel: threading.Event) -> int:
        """
        Deliver events until exhausted, cancelled or capped.

        Reaching max_events sets cancel so that whatever produces the
        events can stop as well; the remaining events are discarded.

        Args:
            events: Events to deliver, possibly a lazy generator
            cancel: Cancellation token shared with the producer

        Returns:
            Number of events delivered
        """
        delivered = 0
        for event in events:
            if cancel.is_set():
                break
            if not self.accepts(event):
                continue
            if not self.send(event, cancel):
                break
            delivered += 1
            if self.max_events > 0 and delivered >= self.max_events:
                logger.debug("Reached max events (%d), discarding the rest", self.max_events)
                cancel.set()
                break
        return delivered
