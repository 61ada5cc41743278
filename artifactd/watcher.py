"""
Manifest directory watcher.

Triggers a reconciliation pass when manifests change, and periodically even
when nothing changed so drift in the work area or in referenced objects is
picked up:

- Watchdog-based file monitoring
- Debounced triggering (editor save cycles produce a burst of events)
- Periodic resync
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .resources import MANIFEST_SUFFIXES


class ManifestEventHandler(FileSystemEventHandler):
    """
    Records that the manifest directory changed.

    Events are not acted on directly; flush_pending() reports whether a
    change has been quiet for at least DEBOUNCE_SECONDS.
    """

    DEBOUNCE_SECONDS = 1.0

    def __init__(self, root: Path | None = None, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.root = Path(root) if root is not None else None
        self.clock = clock
        self._lock = threading.Lock()
        self._last_event: float | None = None
        self.changed_paths: set[str] = set()

    def _is_relevant(self, path: str) -> bool:
        p = Path(path)
        if self.root is not None and p.is_relative_to(self.root):
            p = p.relative_to(self.root)
        if any(part.startswith(".") for part in p.parts):
            return False
        return p.suffix.lower() in MANIFEST_SUFFIXES

    def _record(self, *paths: str) -> None:
        relevant = [p for p in paths if p and self._is_relevant(p)]
        if not relevant:
            return
        with self._lock:
            self._last_event = self.clock()
            self.changed_paths.update(relevant)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if event.event_type in ("opened", "closed_no_write"):
            return
        dest = getattr(event, "dest_path", "") or ""
        self._record(str(event.src_path), str(dest))

    def flush_pending(self) -> list[str]:
        """
        Return (and forget) the changed paths once the debounce window has passed.

        Returns an empty list while events are still arriving.
        """
        with self._lock:
            if self._last_event is None:
                return []
            if self.clock() - self._last_event < self.DEBOUNCE_SECONDS:
                return []
            changed = sorted(self.changed_paths)
            self.changed_paths.clear()
            self._last_event = None
            return changed


def watch_manifests(manifest_dir: Path, recursive: bool = True) -> tuple[Observer, ManifestEventHandler]:
    """
    Start watching a manifest directory.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = ManifestEventHandler(root=manifest_dir)
    observer = Observer()
    observer.schedule(handler, str(manifest_dir), recursive=recursive)
    observer.start()
    return observer, handler


def run_watch_loop(
    manifest_dir: Path,
    on_pass: Callable[[str], None],
    resync_interval_s: float,
    *,
    poll_interval_s: float = 0.5,
    stop: threading.Event | None = None,
) -> None:
    """
    Run reconciliation passes until interrupted.

    `on_pass` receives the trigger ("startup", "change" or "resync"). The first
    pass runs immediately. Blocks until `stop` is set or Ctrl+C.
    """
    stop = stop or threading.Event()
    observer, handler = watch_manifests(manifest_dir)

    try:
        on_pass("startup")
        next_resync = time.monotonic() + resync_interval_s
        while not stop.wait(poll_interval_s):
            if handler.flush_pending():
                on_pass("change")
                next_resync = time.monotonic() + resync_interval_s
            elif time.monotonic() >= next_resync:
                on_pass("resync")
                next_resync = time.monotonic() + resync_interval_s
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
