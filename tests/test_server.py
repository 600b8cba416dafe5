import asyncio
import logging

from dsbg.config import Settings
from dsbg.errors import BuildError
from dsbg.server import DevServer, _ChangeHandler, _PreviewHandler


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def make_server(tmp_path, **kwargs) -> DevServer:
    content = tmp_path / "content"
    content.mkdir(exist_ok=True)
    settings = Settings(input_path=content, output_path=tmp_path / "public", port=666)
    return DevServer(settings, **kwargs)


def make_handler(tmp_path, path):
    handler = _PreviewHandler.__new__(_PreviewHandler)
    handler.path = path
    handler.directory = str(tmp_path)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.wfile = tmp_path.joinpath("out.bin").open("wb")
    handler.send_response = lambda code, message=None: None
    handler.send_header = lambda *args, **kwargs: None
    return handler


def test_dev_server_ports(tmp_path):
    server = make_server(tmp_path)
    assert server.http_port == 666
    assert server.ws_port == 667
    assert ":667" in server.snippet

    override = make_server(tmp_path, http_port=5055)
    assert override.http_port == 5055
    assert override.ws_port == 5056

    explicit = make_server(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert ":6000" in explicit.snippet


def test_change_handler_skips_output(tmp_path):
    server = make_server(tmp_path)
    server.output_dir.mkdir()
    called = []
    server.request_rebuild = lambda: called.append(True)
    handler = _ChangeHandler(server)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "content"), is_directory=True))
    assert not called

    handler.on_any_event(DummyEvent(str(tmp_path / "content" / "post.md")))
    assert called == [True]


def test_send_to_clients_drops_stale_clients(tmp_path):
    server = make_server(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise ConnectionError("gone")

    good = GoodWS()
    bad = BadWS()
    server._clients = {good, bad}
    asyncio.run(server._send_to_clients("reload"))
    assert good.messages == ["reload"]
    assert server._clients == {good}


def test_notify_clients_schedules_on_loop(monkeypatch, tmp_path):
    server = make_server(tmp_path)
    called = {}

    def fake_runner(coro, loop):
        called["loop"] = loop
        new_loop = asyncio.new_event_loop()
        try:
            return new_loop.run_until_complete(coro)
        finally:
            new_loop.close()

    monkeypatch.setattr("dsbg.server.asyncio.run_coroutine_threadsafe", fake_runner)
    server.notify_clients()
    assert called["loop"] is server._loop


def test_rebuild_keeps_output_and_skips_unchanged(monkeypatch, tmp_path):
    server = make_server(tmp_path)
    post = tmp_path / "content" / "post.md"
    post.write_text("one", encoding="utf-8")
    calls = []

    def fake_build(settings, clean=True, confirm=None, patterns=None):
        calls.append(("build", clean))

    monkeypatch.setattr("dsbg.server.build_site", fake_build)
    server.notify_clients = lambda: calls.append("reload")

    assert server.rebuild() is True
    assert server.rebuild() is False
    post.write_text("one two", encoding="utf-8")
    assert server.rebuild() is True
    assert calls == [("build", False), "reload", ("build", False), "reload"]


def test_rebuild_failure_is_logged(monkeypatch, tmp_path, caplog):
    server = make_server(tmp_path)
    (tmp_path / "content" / "post.md").write_text("one", encoding="utf-8")
    reloads = []

    def failing_build(settings, clean=True, confirm=None, patterns=None):
        raise BuildError(settings.input_path / "post.md", "boom")

    monkeypatch.setattr("dsbg.server.build_site", failing_build)
    server.notify_clients = lambda: reloads.append(True)

    with caplog.at_level(logging.ERROR, logger="dsbg"):
        assert server.rebuild() is False
    assert "Rebuild failed" in caplog.text
    assert "boom" in caplog.text
    assert not reloads
    assert server._fingerprint is None


def test_request_rebuild_coalesces(monkeypatch, tmp_path):
    server = make_server(tmp_path)
    started = []

    class DummyThread:
        def __init__(self, target, daemon=False):
            self.target = target

        def start(self):
            started.append(self.target)

    monkeypatch.setattr("dsbg.server.threading.Thread", DummyThread)

    server.request_rebuild()
    assert len(started) == 1
    assert server._rebuilding is True

    server.request_rebuild()
    server.request_rebuild()
    assert len(started) == 1
    assert server._pending is True


def test_rebuild_loop_runs_once_more_for_pending_events(tmp_path):
    server = make_server(tmp_path)
    server._debounce_seconds = 0
    server._rebuilding = True
    calls = []

    def fake_rebuild():
        calls.append(True)
        if len(calls) == 1:
            # Events that arrive while the first rebuild runs.
            server.request_rebuild()
            server.request_rebuild()
        return True

    server.rebuild = fake_rebuild
    server._rebuild_loop()

    assert len(calls) == 2
    assert server._rebuilding is False
    assert server._pending is False


def test_source_fingerprint(tmp_path):
    content = tmp_path / "content"
    content.mkdir()
    css = tmp_path / "custom.css"
    css.write_text("body{}", encoding="utf-8")
    settings = Settings(
        input_path=content, output_path=content / "public", custom_css_path=css
    )
    server = DevServer(settings)
    assert server._source_fingerprint() is not None

    (content / "post.md").write_text("hi", encoding="utf-8")
    (content / "public").mkdir()
    (content / "public" / "index.html").write_text("out", encoding="utf-8")

    signature = server._source_fingerprint()
    paths = [entry[0] for entry in signature]
    assert str(content / "post.md") in paths
    assert str(css) in paths
    assert str(content / "public" / "index.html") not in paths
    assert server.watched_paths() == [content, css]


def test_source_fingerprint_empty(tmp_path):
    server = make_server(tmp_path)
    assert server._source_fingerprint() is None


def test_start_watcher_schedules_paths(monkeypatch, tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    css = tmp_path / "custom.css"
    css.write_text("body{}", encoding="utf-8")
    content = tmp_path / "content"
    content.mkdir()
    settings = Settings(input_path=content, templates_dir=templates, custom_css_path=css)
    server = DevServer(settings)
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((path, recursive))

        def start(self):
            scheduled.append(("started", True))

    monkeypatch.setattr("dsbg.server.Observer", DummyObserver)
    server._start_watcher()

    assert (str(content), True) in scheduled
    assert (str(templates), True) in scheduled
    assert (str(tmp_path), False) in scheduled
    assert scheduled[-1] == ("started", True)


def test_ws_start_failure(monkeypatch, tmp_path, caplog):
    server = make_server(tmp_path, http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    monkeypatch.setattr(server, "_websocket_main", fake_run)
    server._loop = asyncio.new_event_loop()
    with caplog.at_level(logging.ERROR, logger="dsbg"):
        server._serve_websockets()
    assert "failed to start" in caplog.text


def test_stop_and_register_client(tmp_path):
    server = make_server(tmp_path)
    server.stop()

    class DummyObserver:
        def __init__(self):
            self.calls = []

        def stop(self):
            self.calls.append("stop")

        def join(self):
            self.calls.append("join")

    server._observer = DummyObserver()
    server.stop()
    assert server._observer.calls == ["stop", "join"]

    class DummyWS:
        def __init__(self):
            self.closed = False

        async def wait_closed(self):
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._register_client(ws))
    assert ws.closed
    assert ws not in server._clients


def test_reload_handler_injects_script(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/index.html")

    result = _PreviewHandler.send_head(handler)
    handler.wfile.close()

    output = tmp_path.joinpath("out.bin").read_bytes()
    assert result is None
    assert b"new WebSocket" in output
    assert output.index(b"new WebSocket") < output.index(b"</body>")


def test_reload_handler_serves_directory_index(tmp_path):
    post = tmp_path / "post"
    post.mkdir()
    (post / "index.html").write_text("<html>No body here</html>", encoding="utf-8")
    handler = make_handler(tmp_path, "/post/")

    _PreviewHandler.send_head(handler)
    handler.wfile.close()

    output = tmp_path.joinpath("out.bin").read_bytes()
    assert output.index(b"<html>No body here</html>") < output.index(b"<script>")
    assert output.rstrip().endswith(b"</script>")


def test_reload_handler_404_for_missing_and_bare_directories(tmp_path):
    (tmp_path / "empty").mkdir()
    for path in ("/missing.html", "/empty/"):
        handler = make_handler(tmp_path, path)
        errors = []
        handler.send_error = lambda code, message=None: errors.append(code)
        assert _PreviewHandler.send_head(handler) is None
        handler.wfile.close()
        assert errors == [404]


def test_send_head_falls_back_for_other_files(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler = make_handler(tmp_path, "/style.css")
    handler.end_headers = lambda: None

    result = _PreviewHandler.send_head(handler)
    handler.wfile.close()

    assert result is not None
    result.close()
