"""Development server: static file serving, live reload and source watching."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import threading
from functools import partial
from html import escape
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union
from urllib.parse import unquote, urlparse

from watchfiles import awatch
from websockets.asyncio.server import ServerConnection, broadcast, serve

from .assets import list_client_folders
from .config import ReportConfig

logger = logging.getLogger("audit_reports.devserver")

RELOAD_MESSAGE = "reload"
LIVE_RELOAD_SNIPPET = """<script>
  (function () {
    var socket = new WebSocket('ws://' + window.location.hostname + ':%(port)d');
    socket.onmessage = function (event) {
      if (event.data === '%(message)s') {
        window.location.reload();
      }
    };
    socket.onerror = function () {
      console.log('Live reload connection unavailable');
    };
  })();
</script>
"""


def inject_live_reload(html: str, port: int) -> str:
    """Insert the live-reload client before the closing body tag."""
    snippet = LIVE_RELOAD_SNIPPET % {"port": port, "message": RELOAD_MESSAGE}
    index = html.rfind("</body>")
    if index == -1:
        return html + snippet
    return html[:index] + snippet + html[index:]


def resolve_request(output_root: Path, url_path: str) -> Tuple[str, Union[str, Path, None]]:
    """Map a request path onto the output tree.

    Returns one of ``("redirect", location)``, ``("file", path)`` or
    ``("missing", None)``.
    """
    root = Path(output_root).resolve()
    path = unquote(urlparse(url_path).path) or "/"
    if path == "/":
        folders = list_client_folders(root)
        if folders:
            return "redirect", f"/{folders[0]}/"
        return "missing", None

    candidate = (root / path.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return "missing", None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    if candidate.is_file():
        return "file", candidate
    return "missing", None


def not_found_page(output_root: Path, requested: str) -> str:
    folders = list_client_folders(output_root)
    if folders:
        items = "".join(f'<li><a href="/{escape(f)}/">{escape(f)}</a></li>' for f in folders)
    else:
        items = "<li>No reports available</li>"
    return (
        "<html><head><title>404 - File Not Found</title></head><body>"
        "<h1>404 - File Not Found</h1>"
        f"<p>Requested file: {escape(requested)}</p>"
        f"<p>Available client reports:</p><ul>{items}</ul>"
        "</body></html>"
    )


class ReportRequestHandler(BaseHTTPRequestHandler):
    """Serves the output tree with live reload injected into HTML pages."""

    def __init__(self, *args, output_root: Path, reload_port: int, **kwargs) -> None:
        self.output_root = output_root
        self.reload_port = reload_port
        super().__init__(*args, **kwargs)

    def _send(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802 - http.server naming
        outcome, target = resolve_request(self.output_root, self.path)
        if outcome == "redirect":
            self.send_response(302)
            self.send_header("Location", str(target))
            self.end_headers()
            return
        if outcome == "missing" or not isinstance(target, Path):
            body = not_found_page(self.output_root, self.path).encode("utf-8")
            self._send(404, body, "text/html; charset=utf-8")
            return
        try:
            data = target.read_bytes()
        except OSError as exc:
            body = f"<h1>500 - Internal Server Error</h1><p>{escape(str(exc))}</p>"
            self._send(500, body.encode("utf-8"), "text/html; charset=utf-8")
            return
        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        if content_type == "text/html":
            html = inject_live_reload(data.decode("utf-8", errors="replace"), self.reload_port)
            self._send(200, html.encode("utf-8"), "text/html; charset=utf-8")
        else:
            self._send(200, data, content_type)

    def log_message(self, format: str, *args) -> None:  # noqa: A002 - signature from base class
        logger.debug("%s - %s", self.address_string(), format % args)


def start_http_server(output_root: Path, port: int, reload_port: int) -> ThreadingHTTPServer:
    handler = partial(ReportRequestHandler, output_root=Path(output_root), reload_port=reload_port)
    server = ThreadingHTTPServer(("", port), handler)
    thread = threading.Thread(target=server.serve_forever, name="report-http", daemon=True)
    thread.start()
    logger.info("Development server running at http://localhost:%d", port)
    logger.info("Serving files from %s", output_root)
    return server


async def _hold_connection(connection: ServerConnection) -> None:
    await connection.wait_closed()


def watch_paths(config: ReportConfig) -> List[Path]:
    return [path for path in (config.templates_dir, config.assets_dir / "styles") if path.exists()]


async def regenerate_safely(regenerate: Callable[[], object]) -> bool:
    """Run one regeneration off the event loop; errors are logged, never raised."""
    try:
        await asyncio.to_thread(regenerate)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Error regenerating reports, waiting for the next change")
        return False
    return True


async def serve_dev(
    config: ReportConfig,
    regenerate: Callable[[], object],
    paths: Optional[Iterable[Path]] = None,
    regenerate_first: bool = True,
) -> None:
    """Serve reports, regenerate on source changes and notify connected browsers."""
    watched = list(paths) if paths is not None else watch_paths(config)
    config.output_root.mkdir(parents=True, exist_ok=True)
    http_server = start_http_server(config.output_root, config.port, config.live_reload_port)
    stop = asyncio.Event()
    try:
        async with serve(_hold_connection, "", config.live_reload_port) as reload_server:
            logger.info("Live reload server running on ws://localhost:%d", config.live_reload_port)
            if regenerate_first:
                await regenerate_safely(regenerate)
            logger.info("Watching %s (Ctrl+C to stop)", ", ".join(str(p) for p in watched))
            async for changes in awatch(*watched, stop_event=stop):
                for _, changed in sorted(changes):
                    logger.info("File changed: %s", changed)
                if await regenerate_safely(regenerate):
                    broadcast(reload_server.connections, RELOAD_MESSAGE)
                    logger.info("Reports regenerated, reload sent")
    finally:
        stop.set()
        logger.info("Shutting down dev server")
        http_server.shutdown()
        http_server.server_close()
