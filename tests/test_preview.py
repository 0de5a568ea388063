"""
Tests for the preview server and the live-reload hub.
"""

import time

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from kiln.core.preview.reload import LiveReloadHub
from kiln.core.preview.server import CLIENT_PATH, RELOAD_PATH, create_app, inject_client


@pytest.fixture
def dist(tmp_path):
    root = tmp_path / "dist"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<html><body><h1>Hi</h1></body></html>")
    (root / "css" / "main.min.css").write_text("body{}")
    (tmp_path / "secret.txt").write_text("nope")
    return root


@pytest.fixture
def hub(dist):
    return LiveReloadHub(dist)


@pytest.fixture
def client(dist, hub):
    return TestClient(create_app(dist, hub))


def _wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class FakeSocket:
    def __init__(self, fail=False, error=None):
        self.sent = []
        self.error = error or (RuntimeError("socket closed") if fail else None)

    async def send_json(self, data, mode="text"):
        if self.error is not None:
            raise self.error
        self.sent.append(data)


class TestInjectClient:
    def test_before_closing_body(self):
        html = inject_client("<body><p>x</p></BODY>")
        assert html == f'<body><p>x</p><script src="{CLIENT_PATH}"></script></BODY>'

    def test_appended_without_body(self):
        assert inject_client("<p>x</p>").endswith(f'<script src="{CLIENT_PATH}"></script>')


class TestServer:
    def test_index_has_reload_client(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert f'<script src="{CLIENT_PATH}"></script></body>' in response.text
        assert response.headers["cache-control"] == "no-store"

    def test_static_file(self, client):
        response = client.get("/css/main.min.css")
        assert response.status_code == 200
        assert response.text == "body{}"
        assert response.headers["cache-control"] == "no-store"

    def test_missing_file_is_404(self, client):
        response = client.get("/css/missing.css")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_path_outside_dist_is_rejected(self, client):
        response = client.get("/..%2Fsecret.txt")
        assert response.status_code in (400, 404)
        assert "nope" not in response.text

    def test_client_script(self, client):
        response = client.get(CLIENT_PATH)
        assert response.status_code == 200
        assert RELOAD_PATH in response.text

    def test_websocket_registers_with_hub(self, client, hub):
        with client.websocket_connect(RELOAD_PATH) as websocket:
            websocket.send_text("hello")
            assert _wait_for(lambda: hub.client_count == 1)
        assert _wait_for(lambda: hub.client_count == 0)


class TestHub:
    def test_css_only_change_is_injected(self, hub, dist):
        message = hub.message_for([dist / "css" / "main.min.css"])
        assert message == {"type": "css", "paths": ["css/main.min.css"]}

    def test_other_changes_reload(self, hub, dist):
        assert hub.message_for([dist / "index.html"]) == {"type": "reload"}
        mixed = [dist / "css" / "main.min.css", dist / "js" / "main.min.js"]
        assert hub.message_for(mixed) == {"type": "reload"}

    @pytest.mark.asyncio
    async def test_broadcast_drops_broken_clients(self, hub, dist):
        good, bad = FakeSocket(), FakeSocket(fail=True)
        hub.add(good)
        hub.add(bad)

        await hub.broadcast([dist / "index.html"])

        assert good.sent == [{"type": "reload"}]
        assert hub.client_count == 1

    @pytest.mark.asyncio
    async def test_broadcast_drops_disconnected_clients(self, hub, dist):
        healthy = FakeSocket()
        gone = FakeSocket(error=WebSocketDisconnect(code=1006))
        hub.add(gone)
        hub.add(healthy)

        message = await hub.broadcast([dist / "css" / "main.min.css"])

        assert healthy.sent == [message]
        assert hub.client_count == 1
