"""Request routing, page rendering and change watching."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import os
import re
import sys
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import jinja2
from jinja2 import nodes
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from barry.assets import template_funcs
from barry.cache import save_cached_html
from barry.config import Config
from barry.errors import is_not_found_error
from barry.executor import execute_server_file

ROUTES_DIR = "routes"
COMPONENTS_DIR = "components"
WATCH_DIRS = ("routes", "components", "public")
PAGE_FILE = "index.html"
SERVER_FILE = "index.server.py"

_ERROR_DIR = "routes/_error"
_SHARED_LAYOUT = "components/layouts/layout.html"
_LAYOUT_PREFIX = "<!-- layout:"
_LAYOUT_SUFFIX = "-->"
_WATCHED_EVENTS = frozenset({"created", "modified", "deleted", "moved"})
_NOT_FOUND_MESSAGE = "Page not found"

_LIVE_RELOAD_SCRIPT = """
<script>
	if (typeof WebSocket !== "undefined") {
		const ws = new WebSocket("ws://" + location.host + "/__barry_reload");
		ws.onmessage = e => {
			if (e.data === "reload") location.reload();
		};
	}
</script>
</body>"""


@dataclass
class Route:
    """A page directory and the URL pattern that selects it."""

    url_pattern: re.Pattern[str]
    param_keys: list[str]
    html_path: str
    server_path: str
    file_path: str


@dataclass
class RuntimeContext:
    """How the router runs: environment, watching and reload callback."""

    env: str
    enable_watch: bool = False
    on_reload: Callable[[], Any] | None = field(default=None)


def _walk(root: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(path, is_dir)`` depth-first in lexical order, root first."""
    if not os.path.lexists(root):
        return
    is_dir = os.path.isdir(root) and not os.path.islink(root)
    yield root, is_dir
    if not is_dir:
        return
    try:
        names = sorted(os.listdir(root))
    except OSError:
        return
    for name in names:
        yield from _walk(os.path.join(root, name))


def find_layout(content: str) -> str | None:
    """Return the layout named by a ``<!-- layout: ... -->`` line, if any."""
    for line in content.split("\n"):
        line = line.strip()
        if line.startswith(_LAYOUT_PREFIX) and line.endswith(_LAYOUT_SUFFIX):
            return line[len(_LAYOUT_PREFIX):-len(_LAYOUT_SUFFIX)].strip() or None
    return None


def collect_components(directory: str = COMPONENTS_DIR) -> list[str]:
    """List the ``.html`` files below *directory* in walk order."""
    return [
        path
        for path, is_dir in _walk(directory)
        if not is_dir and path.endswith(".html")
    ]


def should_log_request(path: str) -> bool:
    """Return False for paths that browsers request on their own."""
    return not path.startswith(("/.well-known", "/favicon.ico", "/robots.txt"))


def accepts_gzip(headers: Mapping[str, str]) -> bool:
    """Return True if the request headers accept gzip encoding."""
    for key, value in headers.items():
        if key.lower() == "accept-encoding":
            return "gzip" in value
    return False


def _read_layout(path: str) -> str | None:
    try:
        return find_layout(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError):
        return None


def _template_name(path: str) -> str:
    return Path(path).as_posix()


def _environment(env: str, cache_dir: str) -> jinja2.Environment:
    environment = jinja2.Environment(
        loader=jinja2.FileSystemLoader(os.getcwd()),
        autoescape=True,
    )
    environment.globals.update(template_funcs(env, cache_dir))
    return environment


def _compile(environment: jinja2.Environment, files: list[str]) -> None:
    for file in files:
        environment.get_template(_template_name(file))


def _execute(
    environment: jinja2.Environment,
    page: str,
    layout: str | None,
    context: Mapping[str, Any],
) -> str:
    name = _template_name(page)
    if layout is None:
        return environment.get_template(name).render(dict(context))
    source, _, _ = environment.loader.get_source(environment, name)
    if environment.parse(source).find(nodes.Extends) is not None:
        return environment.get_template(name).render(dict(context))
    wrapped = "{% extends " + json.dumps(_template_name(layout)) + " %}" + source
    return environment.from_string(wrapped).render(dict(context))


def _plain_error(message: str, status: int = 500) -> Response:
    return PlainTextResponse(
        message + "\n",
        status_code=status,
        headers={"X-Content-Type-Options": "nosniff"},
    )


def _try_render_error(
    file: str, config: Config, env: str, context: Mapping[str, Any]
) -> str | None:
    try:
        content = Path(file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None

    layout = find_layout(content)
    files = ([layout] if layout else []) + [file]
    shared = os.path.normpath(_SHARED_LAYOUT)
    files += [
        path
        for path in collect_components()
        if not (layout and os.path.normpath(path) == shared)
    ]

    environment = _environment(env, config.output_dir)
    try:
        _compile(environment, files)
    except (jinja2.TemplateError, OSError, UnicodeDecodeError) as err:
        print("❌ Error parsing error page:", err)
        return None
    try:
        return _execute(environment, file, layout, context)
    except Exception as err:  # noqa: BLE001 - any failure falls back to plain text
        print("❌ Error executing error layout:", err)
        return None


def render_error_page(
    config: Config, env: str, status: int, message: str, path: str
) -> Response:
    """Render ``routes/_error/<status>.html`` or ``index.html``, else plain text."""
    context = {
        "Title": f"{status} - {message}",
        "StatusCode": status,
        "Message": message,
        "Path": path,
        "Description": message,
    }
    for candidate in (f"{_ERROR_DIR}/{status}.html", f"{_ERROR_DIR}/{PAGE_FILE}"):
        rendered = _try_render_error(candidate, config, env, context)
        if rendered is not None:
            return HTMLResponse(rendered, status_code=status)
    return PlainTextResponse(f"{status} - {message}", status_code=status)


async def _lifespan(receive: Callable[..., Any], send: Callable[..., Any]) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, router: Router) -> None:
        super().__init__()
        self._router = router

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _WATCHED_EVENTS:
            self._router._on_change(str(event.src_path))


class Router:
    """ASGI application that maps URLs to page directories under ``routes``."""

    def __init__(self, config: Config, ctx: RuntimeContext) -> None:
        self.config = config
        self.env = ctx.env
        self.on_reload = ctx.on_reload
        self.routes: list[Route] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Any = None
        self.load_routes()
        if ctx.enable_watch:
            self._observer = self.watch()

    def load_routes(self) -> None:
        """Rebuild the route table from the directories under ``routes``."""
        routes: list[Route] = []
        for path, is_dir in _walk(ROUTES_DIR):
            if not is_dir:
                continue
            html_path = os.path.join(path, PAGE_FILE)
            if not os.path.exists(html_path):
                continue
            keys: list[str] = []
            pieces: list[str] = []
            for part in Path(path).relative_to(ROUTES_DIR).parts:
                if part.startswith("_"):
                    keys.append(part[1:])
                    pieces.append("([^/]+)")
                else:
                    pieces.append(re.escape(part))
            routes.append(
                Route(
                    url_pattern=re.compile("^" + "/".join(pieces) + "$"),
                    param_keys=keys,
                    html_path=html_path,
                    server_path=os.path.join(path, SERVER_FILE),
                    file_path=path,
                )
            )
        self.routes = routes

    def match(self, path: str) -> tuple[Route, dict[str, str]] | None:
        """Return the first route matching *path* and its parameters."""
        path = path.strip("/")
        for route in self.routes:
            found = route.url_pattern.fullmatch(path)
            if found is not None:
                return route, dict(zip(route.param_keys, found.groups()))
        return None

    def watch(self) -> Any:
        """Start watching the project directories; return the observer."""
        observer = Observer()
        handler = _ChangeHandler(self)
        for base in WATCH_DIRS:
            if os.path.isdir(base):
                observer.schedule(handler, base, recursive=True)
        observer.daemon = True
        observer.start()
        return observer

    def _on_change(self, name: str) -> None:
        self.load_routes()
        if self.env != "dev":
            return
        print("🔄 Change detected:", name, file=sys.stderr)
        if self.on_reload is None:
            return
        result = self.on_reload()
        if inspect.iscoroutine(result):
            loop = self._loop
            if loop is not None and loop.is_running() and not loop.is_closed():
                asyncio.run_coroutine_threadsafe(result, loop)
            else:
                result.close()

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] == "lifespan":
            await _lifespan(receive, send)
            return
        if scope["type"] != "http":
            await send({"type": "websocket.close", "code": 1000})
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        start = time.perf_counter()
        request = Request(scope, receive)
        url_path = request.url.path
        response = await run_in_threadpool(self._respond, url_path, request.headers)
        await response(scope, receive, send)

        if self.env == "dev" and should_log_request(url_path):
            elapsed = int((time.perf_counter() - start) * 1000)
            print(f"{url_path} {response.status_code} {elapsed}ms")

    def _respond(self, url_path: str, headers: Mapping[str, str]) -> Response:
        path = url_path.strip("/")
        if not path:
            return self._serve_page(
                os.path.join(ROUTES_DIR, PAGE_FILE),
                os.path.join(ROUTES_DIR, SERVER_FILE),
                url_path,
                headers,
                {},
                "",
            )
        found = self.match(path)
        if found is None:
            return self._not_found(url_path)
        route, params = found
        return self._serve_page(
            route.html_path, route.server_path, url_path, headers, params, path
        )

    def _not_found(self, url_path: str) -> Response:
        return render_error_page(self.config, self.env, 404, _NOT_FOUND_MESSAGE, url_path)

    def _cached_response(self, route_key: str, headers: Mapping[str, str]) -> Response | None:
        cached = Path(self.config.output_dir, route_key, PAGE_FILE)
        gz_path = cached.with_name(cached.name + ".gz")
        out_headers = {"content-type": "text/html"}
        if self.config.debug_headers:
            out_headers["X-Barry-Cache"] = "HIT"

        if self.env == "prod" and accepts_gzip(headers) and gz_path.exists():
            try:
                data = gz_path.read_bytes()
            except OSError:
                data = b""
            return Response(data, headers={**out_headers, "content-encoding": "gzip"})

        if cached.exists():
            try:
                data = cached.read_bytes()
            except OSError:
                data = b""
            return Response(data, headers=out_headers)
        return None

    def _serve_page(
        self,
        html_path: str,
        server_path: str,
        url_path: str,
        headers: Mapping[str, str],
        params: dict[str, str],
        resolved_path: str,
    ) -> Response:
        if not os.path.exists(html_path):
            return self._not_found(url_path)

        route_key = resolved_path.removeprefix("/")

        if self.config.cache_enabled:
            cached = self._cached_response(route_key, headers)
            if cached is not None:
                return cached

        layout = _read_layout(html_path)

        data: dict[str, Any] = {}
        if os.path.exists(server_path):
            try:
                data = execute_server_file(server_path, params, self.env == "dev")
            except Exception as err:  # noqa: BLE001 - reported to the client
                if is_not_found_error(err):
                    return self._not_found(url_path)
                return _plain_error(f"Server logic error: {err}")

        files = ([layout] if layout else []) + [html_path] + collect_components()
        environment = _environment(self.env, self.config.output_dir)
        try:
            _compile(environment, files)
        except (jinja2.TemplateError, OSError, UnicodeDecodeError) as err:
            return _plain_error(f"Template error: {err}")
        try:
            html = _execute(environment, html_path, layout, data)
        except Exception as err:  # noqa: BLE001 - reported to the client
            return _plain_error(f"Template execution error: {err}")

        if self.env == "dev":
            html = html.replace("</body>", _LIVE_RELOAD_SCRIPT, 1)
        body = html.encode("utf-8")

        if self.config.cache_enabled:
            with contextlib.suppress(OSError):
                save_cached_html(self.config, route_key, body)

        out_headers = {"content-type": "text/html"}
        if self.config.debug_headers:
            out_headers["X-Barry-Cache"] = "MISS"
        return Response(body, headers=out_headers)