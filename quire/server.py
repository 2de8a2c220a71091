"""Development server for Quire.

Serves the built site with live reload for local writing:
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches posts, layouts, assets and quire.yaml, rebuilding on change.

Rebuilds never overlap. Changes that arrive while a rebuild is running are
folded into a single follow-up rebuild.

Key classes:
- DevServer: Runs the HTTP server, reload websocket and file watcher.
- RebuildScheduler: Serializes and coalesces rebuild requests.
- _ReloadHandler: HTTP request handler that injects the reload script.
- _ChangeHandler: File system event handler that requests rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from collections.abc import Callable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILENAME, BuildResult, build_site, load_config
from .errors import QuireError
from .registry import RegistryStore


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects a live reload script into HTML pages."""

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=4001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _inject(self, content: str) -> bytes:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        return content.encode("utf-8")

    def _send_html(self, status: int, encoded: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with the reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, self._inject(error_page.read_text(encoding="utf-8")))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(200, self._inject(path_obj.read_text(encoding="utf-8")))
            return None
        return super().send_head()


class RebuildScheduler:
    """Runs rebuilds on a worker thread, one at a time.

    ``request()`` never blocks. Requests made while a rebuild is queued or
    running collapse into one pending flag, so a burst of changes triggers
    at most one further rebuild, which sees the latest files.

    Attributes:
        debounce: Seconds to wait after a request before rebuilding, letting
            a burst of file events settle.
    """

    def __init__(self, rebuild: Callable[[], None], debounce: float = 0.05):
        self._rebuild = rebuild
        self.debounce = debounce
        self._cond = threading.Condition()
        self._pending = False
        self._running = False
        self._stopped = False
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        with self._cond:
            self._stopped = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)

    def request(self) -> None:
        with self._cond:
            self._pending = True
            self._cond.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or running. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: not self._pending and not self._running, timeout
            )

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending or self._stopped)
                if self._stopped:
                    return
            if self.debounce:
                time.sleep(self.debounce)
            with self._cond:
                self._pending = False
                self._running = True
            try:
                self._rebuild()
            except Exception as exc:
                print(f"Rebuild failed: {exc}")
            finally:
                with self._cond:
                    self._running = False
                    self._cond.notify_all()


class DevServer:
    """Development server with live reload.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        output_dir: Directory where the built site is served from.
        http_port: Port for the HTTP server.
        ws_port: Port for the reload websocket.
        registry_store: Latest successfully built post registry.
    """

    WATCHED_KEYS = ("posts_dir", "layouts_dir", "assets_dir")

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / self.config.get("output_dir", "_site")
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self._backup_dir = self.output_dir.with_name(self.output_dir.name + ".previous")
        base_http = int(http_port or self.config.get("port", 4000))
        if ws_port is not None:
            resolved_ws = ws_port
        elif http_port is not None:
            resolved_ws = base_http + 1
        else:
            resolved_ws = int(self.config.get("ws_port", base_http + 1))
        self.http_port = base_http
        self.ws_port = resolved_ws
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self.registry_store = RegistryStore()
        self.include_drafts = False
        self.scheduler = RebuildScheduler(self.rebuild)
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self.include_drafts = include_drafts
        self.rebuild(broadcast=False)
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self.scheduler.start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self.scheduler.stop(timeout=5)
        self._loop.call_soon_threadsafe(self._loop.stop)

    def rebuild(self, broadcast: bool = True) -> BuildResult | None:
        """Build into a staging directory and swap it into place.

        On DuplicateSlug or a render failure the previous output and
        registry stay live.

        Returns:
            The BuildResult, or None if the build failed.
        """
        print("Building site...")
        staging = self._prepare_staging_dir()
        try:
            result = build_site(
                self.project_root,
                include_drafts=self.include_drafts,
                root_url="",
                output_dir_override=staging,
            )
        except QuireError as exc:
            print(f"Build failed: {exc}")
            shutil.rmtree(staging, ignore_errors=True)
            return None
        for err in result.errors:
            level = "error" if err.fatal else "warning"
            print(f"  {level}: {err}")
        self._activate_staging(staging)
        self.registry_store.swap(result.registry)
        print(f"Built {len(result.registry)} posts")
        if broadcast:
            self._broadcast_reload()
        return result

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        print(f"Serving {self.output_dir} at http://localhost:{self.http_port}")
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def watched_paths(self) -> list[Path]:
        paths = [self.project_root / self.config[key] for key in self.WATCHED_KEYS]
        return [p for p in paths if p.exists()]

    def _start_watcher(self) -> None:  # pragma: no cover - integration path
        handler = _ChangeHandler(self)
        observer = Observer()
        for watch_path in self.watched_paths():
            observer.schedule(handler, str(watch_path), recursive=True)
        # quire.yaml lives in the project root
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def ignored_dirs(self) -> tuple[Path, ...]:
        return (self.output_dir, self._staging_dir, self._backup_dir)

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        """Move the staging build into the served output directory."""
        target = self.output_dir
        if self._backup_dir.exists():
            shutil.rmtree(self._backup_dir)
        if target.exists():
            os.replace(target, self._backup_dir)
        os.replace(staging, target)
        shutil.rmtree(self._backup_dir, ignore_errors=True)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(os.fsdecode(event.src_path))
        if path.name.startswith(".") or path.name.endswith("~"):
            return
        for ignored in self.server.ignored_dirs():
            if path.is_relative_to(ignored):
                return
        if path.parent == self.server.project_root and path.name != CONFIG_FILENAME:
            return
        self.server.scheduler.request()
