"""
Live-reload server.

Serves the build output directory over HTTP and pushes reload signals to
connected browsers through a Server-Sent Events endpoint. Messages are
``reload`` (refresh the page) or ``css:<file name>`` (refresh one stylesheet).
"""

from __future__ import annotations

import functools
import http.server
import logging
import queue
import threading
import webbrowser
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from folio.pipeline import RELOAD_ENDPOINT

from .watcher import FileWatcher

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

_DISCONNECT = None


# =============================================================================
# Request Handler
# =============================================================================


class LiveReloadHandler(http.server.SimpleHTTPRequestHandler):
    """Static file handler with CORS and the reload event stream."""

    live_server: LiveReloadServer

    def do_GET(self) -> None:
        path = self.path.split("?")[0]
        if path == RELOAD_ENDPOINT:
            self._serve_events()
        else:
            super().do_GET()

    def end_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Cache-Control", "no-cache")
        super().end_headers()

    def _serve_events(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Connection", "keep-alive")
        self.end_headers()

        client = self.live_server.register_client()
        try:
            while True:
                try:
                    message = client.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    self.wfile.write(b": keepalive\n\n")
                    self.wfile.flush()
                    continue
                if message is _DISCONNECT:
                    break
                self.wfile.write(f"data: {message}\n\n".encode())
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            pass
        finally:
            self.live_server.unregister_client(client)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s %s", self.address_string(), format % args)


# =============================================================================
# Server
# =============================================================================


class LiveReloadServer:
    """
    Live-reload transport backed by ``http.server``.

    Provides:
    - ``watch()``: file watchers that live as long as the server
    - ``reload()``: full or stylesheet-only refresh of connected browsers
    - ``init()`` / ``exit()``: serve the output directory, then tear it all down
    """

    def __init__(
        self,
        root: Path,
        host: str = "127.0.0.1",
        port: int = 3000,
        open_browser: bool = False,
        poll_interval: float = 0.25,
    ):
        """
        Initialize the server (nothing is bound until ``init()``).

        Args:
            root: Directory to serve
            host: Host to bind to
            port: Port to bind to (0 picks a free port)
            open_browser: Open the served page in a browser on init
            poll_interval: Polling period for watchers created by ``watch()``
        """
        self.root = root
        self.host = host
        self.port = port
        self.open_browser = open_browser
        self.poll_interval = poll_interval

        self._server: http.server.ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._watchers: list[FileWatcher] = []
        self._clients: list[queue.Queue[str | None]] = []
        self._clients_lock = threading.Lock()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._server is not None

    def watch(
        self,
        paths: Iterable[Path],
        callback: Callable[[Path], None],
        *,
        ignore_initial: bool = True,
        stability_threshold: float | None = None,
    ) -> FileWatcher:
        """Start a watcher on ``paths``; ``exit()`` closes it."""
        watcher = FileWatcher(
            paths,
            callback,
            ignore_initial=ignore_initial,
            stability_threshold=stability_threshold,
            poll_interval=self.poll_interval,
        )
        watcher.start()
        self._watchers.append(watcher)
        return watcher

    def register_client(self) -> queue.Queue[str | None]:
        """Register a browser connection; reload messages arrive on the queue."""
        client: queue.Queue[str | None] = queue.Queue()
        with self._clients_lock:
            self._clients.append(client)
        return client

    def unregister_client(self, client: queue.Queue[str | None]) -> None:
        with self._clients_lock:
            if client in self._clients:
                self._clients.remove(client)

    @property
    def client_count(self) -> int:
        with self._clients_lock:
            return len(self._clients)

    def _broadcast(self, message: str | None) -> int:
        with self._clients_lock:
            clients = list(self._clients)
        for client in clients:
            client.put(message)
        return len(clients)

    def reload(self, target: str | None = None) -> None:
        """
        Tell connected browsers to refresh.

        Args:
            target: Stylesheet file name to refresh alone, or None for a full reload
        """
        message = f"css:{target}" if target and target.endswith(".css") else "reload"
        count = self._broadcast(message)
        if count:
            logger.info("Notified %d browser(s): %s", count, message)

    def init(self) -> None:
        """Bind the HTTP server and start serving in a background thread."""
        if self._server is not None:
            return

        bound = type("BoundLiveReloadHandler", (LiveReloadHandler,), {"live_server": self})
        handler = functools.partial(bound, directory=str(self.root))
        server = http.server.ThreadingHTTPServer((self.host, self.port), handler)
        self._server = server
        self.port = server.server_address[1]

        self._thread = threading.Thread(target=server.serve_forever, name="folio-server", daemon=True)
        self._thread.start()
        logger.info("Serving %s at %s", self.root, self.url)

        if self.open_browser:
            webbrowser.open(self.url)

    def exit(self) -> None:
        """Close watchers, disconnect browsers and stop the server."""
        for watcher in self._watchers:
            watcher.close()
        self._watchers.clear()

        self._broadcast(_DISCONNECT)

        server, self._server = self._server, None
        if server is not None:
            server.shutdown()
            server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
