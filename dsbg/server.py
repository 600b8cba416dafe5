"""Preview server for dsbg.

`dsbg serve` builds the site once, serves the output directory over HTTP
and keeps it fresh while the author writes:

- Every HTML response gets a small script that listens on a websocket
  and reloads the page when told to.
- Directory requests resolve to the configured index file; listings and
  missing files are answered with 404.
- The input directory and custom asset files are watched and the site is
  rebuilt in place when they change.

Rebuilds never overlap. Changes seen while a rebuild runs are folded into
a single follow-up rebuild, and a short debounce delay merges the bursts
of events one save produces.

Key classes:
- DevServer: Runs the HTTP, websocket and watcher parts together.
- _PreviewHandler: HTTP handler serving pages with the reload hook.
- _ChangeHandler: Watchdog handler that requests rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import Settings
from .errors import DsbgError
from .utils import is_within

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = "reload"

RELOAD_SNIPPET = """
<script>
(function () {
  var socket = new WebSocket("ws://" + window.location.hostname + ":%(ws_port)d/");
  socket.addEventListener("message", function (event) {
    if (event.data === "%(message)s") { window.location.reload(); }
  });
})();
</script>
"""


def reload_snippet(ws_port: int) -> str:
    """Script tag that reloads the page on a websocket reload message."""
    return RELOAD_SNIPPET % {"ws_port": ws_port, "message": RELOAD_MESSAGE}


def inject_snippet(page: str, snippet: str) -> str:
    """Insert snippet before the closing body tag, or append it."""
    marker = page.rfind("</body>")
    if marker == -1:
        return page + snippet
    return page[:marker] + snippet + page[marker:]


class _PreviewHandler(SimpleHTTPRequestHandler):
    """Serves the output directory with the reload hook in HTML pages.

    Attributes:
        snippet: Markup injected into every HTML response.
        index_name: File served for directory requests.
    """

    snippet = reload_snippet(667)
    index_name = "index.html"

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s %s", self.address_string(), format % args)

    def list_directory(self, path):
        self.send_error(404, "File not found")
        return None

    def _target(self) -> Path | None:
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / self.index_name
        return target if target.is_file() else None

    def send_head(self):
        target = self._target()
        if target is None:
            self.send_error(404, "File not found")
            return None
        if target.suffix.lower() not in (".html", ".htm"):
            return super().send_head()

        body = inject_snippet(target.read_text(encoding="utf-8"), self.snippet).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        return None


class DevServer:
    """Preview server with live reload.

    Attributes:
        settings: Build settings as given on the command line.
        output_dir: Directory the site is built into and served from.
        http_port: Port of the HTTP server.
        ws_port: Port of the websocket server.
    """

    def __init__(
        self,
        settings: Settings,
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        """Initialize the preview server.

        Args:
            settings: Build settings.
            http_port: Optional override for settings.port.
            ws_port: Websocket port; defaults to the HTTP port plus one.
        """
        self.settings = settings
        self.output_dir = settings.output_path
        self.http_port = int(http_port or settings.port)
        self.ws_port = ws_port if ws_port is not None else self.http_port + 1
        self.snippet = reload_snippet(self.ws_port)
        self._observer = None
        self._clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._build_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._rebuilding = False
        self._pending = False
        self._fingerprint: tuple | None = None
        self._debounce_seconds = 0.2

    def start(self, confirm: Callable[[str], bool] | None = None) -> None:  # pragma: no cover
        """Build, then serve and watch until interrupted.

        Args:
            confirm: Overwrite prompt for the initial build.
        """
        build_site(self.settings, clean=True, confirm=confirm)
        self._fingerprint = self._source_fingerprint()
        for target in (self._serve_http, self._serve_websockets):
            threading.Thread(target=target, daemon=True).start()
        self._start_watcher()
        logger.info("Watching '%s' for changes", self.settings.input_path)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _serve_http(self) -> None:  # pragma: no cover
        handler_cls = type(
            "PreviewHandler",
            (_PreviewHandler,),
            {"snippet": self.snippet, "index_name": self.settings.index_name},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.info(
            "Serving '%s' at http://localhost:%s (Ctrl+C to stop)",
            self.output_dir,
            self.http_port,
        )
        httpd.serve_forever()

    def _serve_websockets(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._websocket_main())
        except OSError as exc:
            logger.error("Live reload server failed to start on port %s: %s", self.ws_port, exc)

    async def _websocket_main(self) -> None:  # pragma: no cover
        async with websockets.serve(self._register_client, "0.0.0.0", self.ws_port):
            await asyncio.Event().wait()

    async def _register_client(self, websocket):
        self._clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._clients.discard(websocket)

    def notify_clients(self) -> None:
        """Tell every connected browser to reload, from any thread."""
        asyncio.run_coroutine_threadsafe(self._send_to_clients(RELOAD_MESSAGE), self._loop)

    async def _send_to_clients(self, message: str) -> None:
        for client in list(self._clients):
            try:
                await client.send(message)
            except Exception as exc:
                logger.debug("Dropping live reload client: %s", exc)
                self._clients.discard(client)

    def watched_paths(self) -> list[Path]:
        """Input directory plus every custom file that affects the output."""
        extras = (
            self.settings.custom_css_path,
            self.settings.custom_js_path,
            self.settings.custom_favicon_path,
            self.settings.templates_dir,
        )
        return [self.settings.input_path, *(path for path in extras if path is not None)]

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for path in self.watched_paths():
            if path.is_dir():
                observer.schedule(handler, str(path), recursive=True)
            elif path.exists():
                # Single files are watched through their parent directory.
                observer.schedule(handler, str(path.parent), recursive=False)
        observer.start()
        self._observer = observer

    def request_rebuild(self) -> None:
        """Schedule a rebuild without blocking the caller.

        While a rebuild is running, further requests only mark a follow-up
        as pending; all of them together cause exactly one more rebuild.
        """
        with self._state_lock:
            if self._rebuilding:
                self._pending = True
                return
            self._rebuilding = True
        threading.Thread(target=self._rebuild_loop, daemon=True).start()

    def _rebuild_loop(self) -> None:
        try:
            while True:
                time.sleep(self._debounce_seconds)
                with self._state_lock:
                    self._pending = False
                self.rebuild()
                with self._state_lock:
                    if not self._pending:
                        self._rebuilding = False
                        return
        except BaseException:
            with self._state_lock:
                self._rebuilding = False
            raise

    def rebuild(self) -> bool:
        """Rebuild the site into the existing output directory.

        Returns:
            True if a build ran and succeeded, False if it was skipped
            because nothing changed or it failed.
        """
        with self._build_lock:
            fingerprint = self._source_fingerprint()
            if fingerprint is not None and fingerprint == self._fingerprint:
                return False
            logger.info("Change detected; rebuilding...")
            try:
                build_site(self.settings, clean=False)
            except DsbgError as exc:
                logger.error("Rebuild failed: %s", exc)
                return False
            self._fingerprint = fingerprint
            self.notify_clients()
            return True

    def _source_fingerprint(self) -> tuple | None:
        """(path, mtime, size) of every watched file, or None if there are none."""
        entries = []
        for root in self.watched_paths():
            if root.is_file():
                candidates = [root]
            elif root.is_dir():
                candidates = sorted(root.rglob("*"))
            else:
                continue
            for path in candidates:
                if path.is_dir() or is_within(path, self.output_dir):
                    continue
                try:
                    stat = path.stat()
                except OSError:
                    continue
                entries.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) or None


class _ChangeHandler(FileSystemEventHandler):
    """Forwards file changes outside the output directory to the server."""

    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        if is_within(Path(event.src_path), self.server.output_dir):
            return
        self.server.request_rebuild()
