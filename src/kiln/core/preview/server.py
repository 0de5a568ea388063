"""
Preview server for the development build.

Serves the output directory, injects the live-reload client into HTML
pages and accepts live-reload websocket connections.
"""

import asyncio
import logging
import re
import threading
import time
import webbrowser
from enum import Enum
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response

from kiln.core.preview.reload import LiveReloadHub

logger = logging.getLogger(__name__)

RELOAD_PATH = "/__livereload"
CLIENT_PATH = "/__livereload.js"
NO_STORE = {"Cache-Control": "no-store"}

CLIENT_SCRIPT = """(function () {
  var scheme = location.protocol === "https:" ? "wss://" : "ws://";
  var socket = new WebSocket(scheme + location.host + "%(path)s");
  socket.onmessage = function (event) {
    var message = JSON.parse(event.data);
    if (message.type !== "css") {
      location.reload();
      return;
    }
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    for (var i = 0; i < links.length; i++) {
      var href = links[i].getAttribute("href").split("?")[0];
      for (var j = 0; j < message.paths.length; j++) {
        if (href.replace(/^\\.?\\//, "") === message.paths[j]) {
          links[i].setAttribute("href", href + "?t=" + Date.now());
        }
      }
    }
  };
  socket.onclose = function () {
    setTimeout(function () { location.reload(); }, 1000);
  };
})();
""" % {"path": RELOAD_PATH}

_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)


class ErrorCode(str, Enum):
    """Error codes for preview responses."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_PATH = "INVALID_PATH"


def inject_client(html: str) -> str:
    """Insert the live-reload script tag before the last ``</body>``."""
    tag = f'<script src="{CLIENT_PATH}"></script>'
    matches = list(_BODY_CLOSE_RE.finditer(html))
    if not matches:
        return html + tag
    at = matches[-1].start()
    return html[:at] + tag + html[at:]


def resolve_request_path(dist: Path, request_path: str) -> Path:
    """
    Map a URL path to a file under ``dist``.

    Raises:
        HTTPException: 400 for paths escaping ``dist``, 404 for missing files
    """
    root = dist.resolve()
    target = (root / request_path.lstrip("/")).resolve()
    if target != root and root not in target.parents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid path")
    if target.is_dir():
        target = target / "index.html"
    if not target.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Not found: /{request_path}"
        )
    return target


def create_app(dist: Path, hub: LiveReloadHub) -> FastAPI:
    """
    Build the preview application for one output directory.

    Args:
        dist: Output directory to serve
        hub: Hub that live-reload websockets register with
    """
    app = FastAPI(title="kiln preview", docs_url=None, redoc_url=None, openapi_url=None)

    @app.websocket(RELOAD_PATH)
    async def livereload(websocket: WebSocket) -> None:
        await websocket.accept()
        hub.add(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            hub.discard(websocket)

    @app.get(CLIENT_PATH)
    async def livereload_client() -> Response:
        return Response(content=CLIENT_SCRIPT, media_type="application/javascript")

    @app.get("/{path:path}")
    async def serve(path: str) -> Response:
        target = resolve_request_path(dist, path)
        if target.suffix.lower() in (".html", ".htm"):
            html = await asyncio.to_thread(target.read_text, encoding="utf-8")
            return HTMLResponse(inject_client(html), headers=NO_STORE)
        return FileResponse(target, headers=NO_STORE)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        error_code = (
            ErrorCode.NOT_FOUND
            if exc.status_code == status.HTTP_404_NOT_FOUND
            else ErrorCode.INVALID_PATH
        )
        logger.info("HTTP %d on %s %s", exc.status_code, request.method, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error_code": error_code, "message": str(exc.detail)},
        )

    return app


class PreviewServer:
    """
    Run the preview app with uvicorn on the current event loop.

    Example:
        >>> server = PreviewServer(Path("dist"), hub, port=3000)
        >>> await server.serve()  # until the process stops
    """

    def __init__(
        self,
        dist: Path,
        hub: LiveReloadHub,
        host: str = "127.0.0.1",
        port: int = 3000,
        open_browser: bool = False,
    ) -> None:
        self.dist = dist
        self.hub = hub
        self.host = host
        self.port = port
        self.open_browser = open_browser
        self.app = create_app(dist, hub)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def serve(self) -> None:
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        server = uvicorn.Server(config)

        if self.open_browser:
            url = self.url

            def open_browser() -> None:
                time.sleep(1.0)  # Wait for server to start
                webbrowser.open(url)

            threading.Thread(target=open_browser, daemon=True).start()

        logger.info(f"Preview server at {self.url}")
        await server.serve()
