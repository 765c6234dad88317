"""
Build serialization.

At most one build runs at a time and at most one waits behind it. A request
that arrives while a build is running replaces any request already waiting,
so the last request always gets built and intermediate ones are dropped.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildRequest:
    """One call to ``build()``: an optional source override plus its sequence number."""

    sequence: int
    source: str | None = None


class BuildScheduler:
    """One build in flight plus one pending slot, newest request wins."""

    def __init__(self, run: Callable[[BuildRequest], None], name: str = "folio-build"):
        self._run = run
        self._name = name
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._running = False
        self._pending: BuildRequest | None = None
        # Held while artifacts are written; shared with CSS-only updates.
        self._write_lock = threading.RLock()

    @property
    def busy(self) -> bool:
        return not self._idle.is_set()

    def exclusive(self) -> AbstractContextManager[Any]:
        """Lock that serializes writes to the output and temp directories."""
        return self._write_lock

    def submit(self, source: str | None = None) -> BuildRequest:
        """Queue a build; returns the request that was recorded."""
        with self._lock:
            request = BuildRequest(sequence=next(self._counter), source=source)
            if self._running:
                if self._pending is not None:
                    logger.debug(
                        "Build #%d supersedes pending build #%d",
                        request.sequence,
                        self._pending.sequence,
                    )
                self._pending = request
                return request
            self._running = True
            self._idle.clear()

        thread = threading.Thread(target=self._drain, args=(request,), name=self._name, daemon=True)
        thread.start()
        return request

    def _drain(self, request: BuildRequest | None) -> None:
        while request is not None:
            try:
                self._run(request)
            except Exception:
                logger.exception("Unhandled error in build #%d", request.sequence)
            with self._lock:
                request, self._pending = self._pending, None
                if request is None:
                    self._running = False
                    self._idle.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no build is running or pending. Returns False on timeout."""
        return self._idle.wait(timeout)
