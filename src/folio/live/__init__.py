"""Development loop: file watching, watch composition and live reload."""

from .composer import LiveReloadTransport, Reaction, WatchBinding, WatchComposer, WatchHandle
from .server import LiveReloadServer
from .watcher import FileWatcher

__all__ = [
    "FileWatcher",
    "LiveReloadServer",
    "LiveReloadTransport",
    "Reaction",
    "WatchBinding",
    "WatchComposer",
    "WatchHandle",
]
