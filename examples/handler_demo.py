#!/usr/bin/env python3
"""
Polling watcher demo with a watchdog event handler.

This example demonstrates:
1. Polling a temporary folder recursively
2. Forwarding polled events to a watchdog FileSystemEventHandler
3. Forcing a cycle with scan_now() after each filesystem change
4. Adding and removing roots while the watcher runs

Usage:
    python examples/handler_demo.py
"""

import shutil
import sys
import tempfile
import time
from pathlib import Path

# Add the repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from watchdog.events import FileSystemEventHandler

from src.pollwatch import HandlerForwarder, PollingWatcher, WatcherConfig


class PrintingHandler(FileSystemEventHandler):
    """Prints every event it receives."""

    ICONS = {
        "created": "➕",
        "deleted": "❌",
        "modified": "📝",
        "moved": "📦",
    }

    def on_any_event(self, event):
        icon = self.ICONS.get(event.event_type, "❓")
        kind = "DIR " if event.is_directory else "FILE"
        print(f"[HANDLER] {icon} {kind} {event.event_type.upper()}: {event.src_path}")
        if event.dest_path:
            print(f"           To: {event.dest_path}")


def step(watcher: PollingWatcher, message: str) -> None:
    print(f"\n[DEMO] {message}")
    watcher.scan_now()
    # Give the forwarder thread time to print
    time.sleep(0.2)


def run_demo(demo_dir: Path) -> None:
    root1 = demo_dir / "watched_folder_1"
    root2 = demo_dir / "watched_folder_2"
    root1.mkdir()
    root2.mkdir()

    config = WatcherConfig(poll_interval=1.0, event_queue_size=100)

    with PollingWatcher(config) as watcher:
        watcher.add_recursive(root1)
        watcher.start_async()
        watcher.wait()
        print(f"[DEMO] Watching {root1}")

        with HandlerForwarder(watcher, PrintingHandler()):
            (root1 / "hello.txt").write_text("Hello, World!")
            (root1 / "data.json").write_text('{"key": "value"}')
            step(watcher, "Created hello.txt and data.json")

            (root1 / "hello.txt").write_text("Hello, Updated World!")
            step(watcher, "Modified hello.txt")

            subdir = root1 / "subdir"
            subdir.mkdir()
            (subdir / "nested.txt").write_text("Nested file content")
            step(watcher, "Created subdir/nested.txt")

            (root1 / "data.json").rename(root1 / "config.json")
            step(watcher, "Renamed data.json to config.json")

            (root1 / "hello.txt").unlink()
            step(watcher, "Deleted hello.txt")

            watcher.add(root2)
            (root2 / "document.md").write_text("# Document\n")
            step(watcher, f"Added root {root2} and created document.md")

            watcher.remove(root1)
            (root1 / "ignored.txt").write_text("No event expected")
            step(watcher, f"Removed root {root1}; created ignored.txt (no event expected)")

            print(f"\n[DEMO] Still watching {len(watcher.watched_files())} entries")


def main():
    """Run the demo."""
    print("=" * 60)
    print("Polling Watcher Demo")
    print("=" * 60)

    demo_dir = Path(tempfile.mkdtemp(prefix="pollwatch_demo_"))
    print(f"\nDemo directory: {demo_dir}")

    try:
        run_demo(demo_dir)
        print("\n" + "=" * 60)
        print("Demo completed successfully!")
        print("=" * 60)
    except KeyboardInterrupt:
        print("\n\nInterrupted!")
    finally:
        print(f"\nCleaning up demo directory: {demo_dir}")
        shutil.rmtree(demo_dir, ignore_errors=True)


if __name__ == "__main__":
    main()
