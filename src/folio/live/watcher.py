"""
Polling file watcher.

Watches files and directories for changes by comparing (mtime, size)
signatures between scans, so it works the same on every platform without
native notification APIs.

Two options shape which changes are reported:

- ``ignore_initial``: when False, files present at the first scan are
  reported as changes too
- ``stability_threshold``: a changed file is only reported once it has gone
  that many seconds without further writes (for large files written
  incrementally)
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

Signature = tuple[int, int]


class FileWatcher:
    """
    Watches a set of paths and calls ``on_change`` once per changed file.

    Created, deleted and modified files all count as changes. Callbacks run
    on the watcher thread, in the order changes were detected.
    """

    def __init__(
        self,
        paths: Iterable[Path],
        on_change: Callable[[Path], None],
        *,
        ignore_initial: bool = True,
        stability_threshold: float | None = None,
        poll_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the file watcher.

        Args:
            paths: Files or directories to watch (directories recursively)
            on_change: Callback for each changed file
            ignore_initial: Do not report files found by the first scan
            stability_threshold: Seconds a file must stay unchanged before it is reported
            poll_interval: Seconds between scans
            clock: Monotonic time source
        """
        self.paths = tuple(Path(p) for p in paths)
        self.on_change = on_change
        self.ignore_initial = ignore_initial
        self.stability_threshold = stability_threshold
        self.poll_interval = poll_interval
        self._clock = clock

        self._stop_event = threading.Event()
        self._poll_lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._snapshot: dict[Path, Signature] | None = None
        # path -> time of the last observed change, awaiting stability
        self._unsettled: dict[Path, float] = {}

    @property
    def closed(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """Take the initial scan and start the polling thread."""
        self.poll()
        self._thread = threading.Thread(target=self._watch_loop, name="folio-watcher", daemon=True)
        self._thread.start()

    def close(self) -> None:
        """Stop watching. No new callback starts after this returns."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2)

    def _scan(self) -> dict[Path, Signature]:
        signatures: dict[Path, Signature] = {}

        for watch_path in self.paths:
            if watch_path.is_file():
                candidates: Iterable[Path] = [watch_path]
            elif watch_path.is_dir():
                candidates = (p for p in watch_path.rglob("*") if p.is_file())
            else:
                continue

            for file_path in candidates:
                try:
                    stat = file_path.stat()
                except OSError:
                    continue
                signatures[file_path] = (stat.st_mtime_ns, stat.st_size)

        return signatures

    def _diff(self, current: dict[Path, Signature]) -> list[Path]:
        if self._snapshot is None:
            return [] if self.ignore_initial else sorted(current)

        previous = self._snapshot
        changed = [p for p, sig in current.items() if previous.get(p) != sig]
        changed.extend(p for p in previous if p not in current)
        return sorted(changed)

    def poll(self) -> list[Path]:
        """
        Scan once and fire callbacks for every reportable change.

        Returns:
            The paths reported by this scan
        """
        with self._poll_lock:
            if self.closed:
                return []

            current = self._scan()
            changed = self._diff(current)
            self._snapshot = current

            if self.stability_threshold is None:
                ready = changed
            else:
                now = self._clock()
                for path in changed:
                    self._unsettled[path] = now
                ready = sorted(
                    p for p, since in self._unsettled.items()
                    if now - since >= self.stability_threshold
                )
                for path in ready:
                    del self._unsettled[path]

            for path in ready:
                if self.closed:
                    break
                try:
                    self.on_change(path)
                except Exception:
                    logger.exception("Error in change callback for %s", path)

            return ready

    def _watch_loop(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            try:
                self.poll()
            except Exception:
                logger.exception("File watcher error")
