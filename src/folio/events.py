"""
Build notifications.

An instance reports build results through three typed notifications:
``BuildUpdate`` (carries the BuildOutput), ``BuildComplete`` and
``BuildFailed`` (carries the exception).
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from folio.pipeline import BuildOutput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildUpdate:
    output: BuildOutput


@dataclass(frozen=True)
class BuildComplete:
    pass


@dataclass(frozen=True)
class BuildFailed:
    error: BaseException


Notification = BuildUpdate | BuildComplete | BuildFailed

N = TypeVar("N", BuildUpdate, BuildComplete, BuildFailed)


class Notifier:
    """Observer registry keyed by notification type."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: defaultdict[type, list[Callable[..., None]]] = defaultdict(list)

    def subscribe(self, kind: type[N], callback: Callable[[N], None]) -> Callable[[], None]:
        """
        Register ``callback`` for notifications of type ``kind``.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers[kind].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[kind]:
                    self._subscribers[kind].remove(callback)

        return unsubscribe

    def has_subscribers(self, kind: type[Notification]) -> bool:
        with self._lock:
            return bool(self._subscribers[kind])

    def publish(self, notification: Notification) -> None:
        """Deliver to every subscriber; a failing subscriber does not stop the others."""
        with self._lock:
            callbacks = list(self._subscribers[type(notification)])
        for callback in callbacks:
            try:
                callback(notification)
            except Exception:
                logger.exception("Error in %s listener", type(notification).__name__)
