import asyncio
import io
import json
from pathlib import Path

import websockets

from stheno.server import (
    DevServer,
    ReloadBroadcaster,
    _ChangeHandler,
    _ReloadHandler,
    inject_reload_script,
)


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = str(path)
        self.is_directory = is_directory


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(root: Path) -> Path:
    write(root / "src" / "index.md", "---\nlayout: none\n---\nHome\n")
    return root


def quiet_server(root: Path) -> DevServer:
    server = DevServer(root)
    server.notified = []
    server.broadcaster.notify = server.notified.append
    return server


def test_ports_and_incremental_site(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    assert (server.http_port, server.ws_port) == (4000, 4001)
    assert server.site.incremental
    assert server.site.config["url"] == "http://localhost:4000"

    custom = DevServer(tmp_path, http_port=5000)
    assert (custom.http_port, custom.ws_port) == (5000, 5001)
    assert custom.site.config["url"] == "http://localhost:5000"
    explicit = DevServer(tmp_path, http_port=5000, ws_port=6000)
    assert explicit.ws_port == 6000


def test_change_handler_skips_build_outputs(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    scheduled = []
    server.schedule_rebuild = lambda: scheduled.append(True)
    handler = _ChangeHandler(server)

    handler.on_any_event(DummyEvent(tmp_path / "output" / "index.html"))
    handler.on_any_event(DummyEvent(tmp_path / ".stheno-cache" / "config.sha256"))
    handler.on_any_event(DummyEvent(tmp_path / ".stheno-metadata"))
    handler.on_any_event(DummyEvent(tmp_path / "src", is_directory=True))
    assert scheduled == []

    handler.on_any_event(DummyEvent(tmp_path / "src" / "index.md"))
    assert scheduled == [True]


def test_burst_of_changes_rebuilds_once(tmp_path):
    create_project(tmp_path)
    server = DevServer(tmp_path)
    server.delay = 0.2
    rebuilds = []
    server.rebuild = lambda: rebuilds.append(True)

    server.schedule_rebuild()
    first = server._pending
    server.schedule_rebuild()
    server._pending.join()
    first.join()
    assert rebuilds == [True]


def test_rebuild_reuses_site_and_notifies(tmp_path):
    create_project(tmp_path)
    server = quiet_server(tmp_path)

    assert server.process()
    assert tmp_path / "output" / "index.html" in server.site.written

    write(tmp_path / "src" / "about.md", "---\nlayout: none\n---\nAbout\n")
    assert server.rebuild()
    assert tmp_path / "output" / "about.html" in server.site.written
    assert tmp_path / "output" / "index.html" not in server.site.written
    assert len(server.notified) == 1
    assert "/about.html" in server.notified[0]
    assert "/index.html" not in server.notified[0]


def test_failed_rebuild_keeps_serving(tmp_path, capsys):
    create_project(tmp_path)
    server = quiet_server(tmp_path)
    write(tmp_path / "src" / "bad.md", "---\n---\n{{ link('missing.md') }}\n")
    assert not server.rebuild()
    assert "Build failed" in capsys.readouterr().err
    assert server.notified == []

    (tmp_path / "src" / "bad.md").unlink()
    assert server.rebuild()
    assert len(server.notified) == 1


def test_config_change_reloads_site_config(tmp_path):
    create_project(tmp_path)
    server = quiet_server(tmp_path)
    server.schedule_rebuild = lambda: None
    assert server.process()

    config_file = write(tmp_path / "stheno.yaml", "title: Renamed\n")
    server.on_change(server.site.root_dir / config_file.name)
    assert server.rebuild()
    assert server.site.config["title"] == "Renamed"
    assert server.site.config["url"] == "http://localhost:4000"
    assert server.site.incremental


def test_send_all_drops_closed_clients():
    class OpenSocket:
        def __init__(self):
            self.messages = []

        async def send(self, message):
            self.messages.append(message)

    class ClosedSocket:
        async def send(self, message):
            raise websockets.ConnectionClosed(None, None)

    broadcaster = ReloadBroadcaster(4001)
    open_socket, closed_socket = OpenSocket(), ClosedSocket()
    broadcaster.clients = {open_socket, closed_socket}
    message = json.dumps({"type": "reload", "paths": ["/index.html"]})
    asyncio.run(broadcaster.send_all(message))
    assert broadcaster.clients == {open_socket}
    assert open_socket.messages == [message]


def test_inject_reload_script():
    assert inject_reload_script("<body>x</body>", "<s/>") == "<body>x<s/></body>"
    assert inject_reload_script("x", "<s/>") == "x<s/>"


def make_handler(directory: Path, path: str):
    handler = _ReloadHandler.__new__(_ReloadHandler)
    handler.directory = str(directory)
    handler.path = path
    handler.wfile = io.BytesIO()
    handler.request_version = "HTTP/1.1"
    handler.requestline = f"GET {path} HTTP/1.1"
    handler.command = "GET"
    handler.client_address = ("127.0.0.1", 0)
    handler.close_connection = True
    return handler


def test_handler_injects_script_and_serves_404(tmp_path):
    write(tmp_path / "index.html", "<body>home</body>")
    write(tmp_path / "about.html", "<body>about</body>")
    write(tmp_path / "404.html", "<body>missing</body>")

    handler = make_handler(tmp_path, "/")
    handler.send_head()
    response = handler.wfile.getvalue().decode("utf-8")
    assert response.startswith("HTTP/1.1 200")
    assert "new WebSocket" in response

    handler = make_handler(tmp_path, "/about")
    handler.send_head()
    assert "about" in handler.wfile.getvalue().decode("utf-8")

    handler = make_handler(tmp_path, "/nope/")
    handler.send_head()
    response = handler.wfile.getvalue().decode("utf-8")
    assert response.startswith("HTTP/1.1 404")
    assert "missing" in response
