"""Configuration for the polling watcher package."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class WatcherConfig:
    """
    Configuration options for the polling watcher.

    Attributes:
        poll_interval: Seconds between polling cycles when start() gets no interval
        min_poll_interval: Shortest interval start() accepts, in seconds
        max_events: Maximum events delivered per cycle (0 = unlimited)
        ignore_hidden: Default for skipping hidden files on add()
        event_queue_size: Capacity of the event queue (0 = unbounded)
        error_queue_size: Capacity of the error queue (0 = unbounded)
        send_timeout: Seconds a blocked queue put waits before re-checking cancellation
        close_timeout: Seconds close() waits for a background polling thread
        ignore_patterns: Glob patterns for entries left out of every listing
    """
    poll_interval: float = 0.1
    min_poll_interval: float = 0.001
    max_events: int = 0
    ignore_hidden: bool = False
    event_queue_size: int = 1
    error_queue_size: int = 0
    send_timeout: float = 0.05
    close_timeout: float = 5.0
    ignore_patterns: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.min_poll_interval <= 0:
            raise ValueError("min_poll_interval must be positive")
        if self.send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        if self.event_queue_size < 0 or self.error_queue_size < 0:
            raise ValueError("queue sizes must not be negative")
