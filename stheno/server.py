"""Development server for Stheno.

``stheno serve`` keeps one Site alive and rebuilds it incrementally while
files change:

- HTTP requests are answered from the destination directory; HTML responses
  get a small script that listens for reload messages.
- A websocket endpoint pushes a reload message after every successful build.
- watchdog events are coalesced into a single rebuild; editing stheno.yaml
  reloads the configuration into the running Site.

Key classes:
- DevServer: Ties the Site, HTTP server, websocket endpoint and watcher together.
- ReloadBroadcaster: Websocket clients and the reload message.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildError
from .config import CONFIG_FILENAME, load_config
from .errors import SthenoError
from .regenerator import METADATA_FILENAME
from .site import Site

logger = logging.getLogger(__name__)

RELOAD_SCRIPT = """<script>
(function () {{
  var socket = new WebSocket("ws://" + location.hostname + ":{port}");
  socket.addEventListener("message", function (event) {{
    var message = JSON.parse(event.data);
    if (message.type === "reload") {{
      window.location.reload();
    }}
  }});
}})();
</script>"""


def inject_reload_script(content: str, script: str) -> str:
    """Insert ``script`` before ``</body>``, or append it when there is none."""
    head, marker, tail = content.rpartition("</body>")
    if not marker:
        return content + script
    return f"{head}{script}{marker}{tail}"


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the destination directory with the reload script in every HTML page.

    ``/about`` falls back to ``about.html``; anything that does not resolve to
    a file is a 404, rendered from ``404.html`` when the site has one.
    """

    reload_script = RELOAD_SCRIPT.format(port=4001)

    def __init__(self, *args: Any, reload_script: str | None = None, **kwargs: Any):
        if reload_script is not None:
            self.reload_script = reload_script
        super().__init__(*args, **kwargs)

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002
        logger.debug("%s %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - send_head never lists
        return self._not_found()

    def resolve(self) -> Path | None:
        """The file a request path maps to, if any."""
        target = Path(self.translate_path(self.path))
        candidates = [target / "index.html"] if target.is_dir() else [
            target,
            target.with_name(target.name + ".html"),
        ]
        return next((path for path in candidates if path.is_file()), None)

    def send_head(self):
        target = self.resolve()
        if target is None:
            return self._not_found()
        if target.suffix != ".html":
            self.path = "/" + target.relative_to(self.directory).as_posix()
            return super().send_head()
        self._send_page(200, target.read_text(encoding="utf-8"))
        return None

    def _send_page(self, status: int, html: str) -> None:
        body = inject_reload_script(html, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _not_found(self):
        page = Path(self.directory) / "404.html"
        if page.is_file():
            self._send_page(404, page.read_text(encoding="utf-8"))
        else:
            self.send_error(404, "File not found")
        return None


class ReloadBroadcaster:
    """Websocket endpoint that tells connected browsers to reload.

    The event loop runs on its own thread; ``notify`` may be called from any
    other thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    def serve_forever(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %s): %s", self.port, exc)

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._register, "0.0.0.0", self.port):
            await asyncio.Future()

    async def _register(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def notify(self, paths: list[str]) -> None:
        message = json.dumps({"type": "reload", "paths": paths})
        asyncio.run_coroutine_threadsafe(self.send_all(message), self.loop)

    async def send_all(self, message: str) -> None:
        """Send ``message`` to every client, forgetting the ones that disconnected."""
        for websocket in list(self.clients):
            try:
                await websocket.send(message)
            except websockets.ConnectionClosed:
                self.clients.discard(websocket)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class DevServer:
    """Development server rebuilding one long-lived Site.

    Attributes:
        project_root: Root directory of the project.
        http_port: Port of the HTTP server.
        ws_port: Port of the websocket endpoint.
        site: The Site rebuilt on every change; always incremental.
        broadcaster: Websocket clients waiting for reloads.
        delay: Seconds of quiet after a change before rebuilding.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Load the configuration and create the Site.

        Without an explicit ``ws_port``, an explicit ``http_port`` moves the
        websocket to the next port; otherwise ``ws_port`` from the
        configuration applies.

        Raises:
            BuildError: If the configuration is invalid.
        """
        self.project_root = project_root
        self._http_override = http_port
        config = self._load_config()
        self.http_port = http_port or int(config["port"])
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None:
            self.ws_port = http_port + 1
        else:
            self.ws_port = int(config["ws_port"])
        config["url"] = f"http://localhost:{self.http_port}"
        try:
            self.site = Site(config)
        except SthenoError as exc:
            raise BuildError(getattr(exc, "source_path", None), str(exc), exc) from exc

        self.broadcaster = ReloadBroadcaster(self.ws_port)
        self.delay = 0.1
        self._observer: Observer | None = None
        self._build_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._pending: threading.Timer | None = None
        self._config_changed = False

    def _load_config(self) -> dict[str, Any]:
        try:
            config = load_config(self.project_root, {"incremental": True})
        except SthenoError as exc:
            raise BuildError(self.project_root / CONFIG_FILENAME, str(exc), exc) from exc
        if hasattr(self, "http_port"):
            config["url"] = f"http://localhost:{self.http_port}"
        return config

    @property
    def output_dir(self) -> Path:
        return self.site.dest

    def start(self) -> None:  # pragma: no cover - integration path
        self.process()
        threading.Thread(target=self._serve_http, daemon=True).start()
        threading.Thread(target=self.broadcaster.serve_forever, daemon=True).start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        with self._timer_lock:
            if self._pending is not None:
                self._pending.cancel()
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self.broadcaster.stop()

    def _serve_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(
            _ReloadHandler,
            directory=str(self.output_dir),
            reload_script=RELOAD_SCRIPT.format(port=self.ws_port),
        )
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        click.echo(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.site.source), recursive=True)
        if self.site.plugins_path.is_dir():
            observer.schedule(handler, str(self.site.plugins_path), recursive=True)
        observer.schedule(handler, str(self.site.root_dir), recursive=False)
        observer.start()
        self._observer = observer

    def ignores(self, path: Path) -> bool:
        """Whether a change to ``path`` was produced by the build itself."""
        if path.name in (METADATA_FILENAME, METADATA_FILENAME + ".tmp"):
            return True
        return any(
            path == produced or produced in path.parents
            for produced in (self.site.dest, self.site.in_cache_dir())
        )

    def on_change(self, path: Path) -> None:
        if self.ignores(path):
            return
        if path.name == CONFIG_FILENAME and path.parent == self.site.root_dir:
            self._config_changed = True
        logger.debug("Changed: %s", path)
        self.schedule_rebuild()

    def schedule_rebuild(self) -> None:
        """Rebuild once changes have been quiet for ``delay`` seconds."""
        with self._timer_lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = threading.Timer(self.delay, self.rebuild)
            self._pending.daemon = True
            self._pending.start()

    def process(self) -> bool:
        """Process the Site; a failing build is reported and the server keeps running.

        Returns:
            True if the build succeeded.
        """
        try:
            if self._config_changed:
                self._config_changed = False
                self.site.config = self._load_config()
            self.site.process()
        except (SthenoError, BuildError) as exc:
            click.echo(click.style(f"Build failed: {exc}", fg="red"), err=True)
            return False
        click.echo(f"Wrote {len(self.site.written)} files")
        return True

    def rebuild(self) -> bool:
        """Rebuild and tell browsers to reload.

        Returns:
            True if the build succeeded.
        """
        with self._build_lock:
            click.echo("Change detected; rebuilding...")
            succeeded = self.process()
            paths = ["/" + path.relative_to(self.output_dir).as_posix() for path in self.site.written]
        if succeeded:
            self.broadcaster.notify(paths)
        return succeeded


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        self.server.on_change(Path(event.src_path))
