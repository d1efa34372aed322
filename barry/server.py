"""Assembly of the web application and the server that runs it."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, PlainTextResponse, Response
from starlette.routing import Route as HttpRoute
from starlette.routing import WebSocketRoute

from barry.config import DEFAULT_CONFIG_FILE, load_config
from barry.livereload import LiveReloader
from barry.router import Router, RuntimeContext, accepts_gzip

PUBLIC_DIR = "public"
RELOAD_PATH = "/__barry_reload"

_IMMUTABLE = "public, max-age=31536000, immutable"
_NO_STORE = "no-store"
_DEFAULT_TYPE = "application/octet-stream"

_IMAGE_TYPES = {
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}
_COMPRESSED_TYPES = {".css": "text/css", ".js": "application/javascript", **_IMAGE_TYPES}
_PUBLIC_TYPES = {**_IMAGE_TYPES, ".woff": "font/woff", ".woff2": "font/woff2"}


@dataclass
class RuntimeConfig:
    """How the server runs: environment, page caching and port."""

    env: str = "dev"
    enable_cache: bool = False
    port: int = 8080


def static_content_type(ext: str) -> str:
    """Return the content type sent with a pre-compressed static asset."""
    return _COMPRESSED_TYPES.get(ext, _DEFAULT_TYPE)


def _ext(name: str) -> str:
    base = name.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot != -1 else ""


def _existing_file(base: str | Path, rel: str) -> Path | None:
    parts = PurePosixPath(rel).parts
    if ".." in parts or (parts and parts[0] == "/"):
        return None
    candidate = Path(base, *parts)
    return candidate if candidate.is_file() else None


def _not_found(cache_control: str | None = None) -> Response:
    headers = {"Cache-Control": cache_control} if cache_control else None
    return PlainTextResponse("404 page not found\n", status_code=404, headers=headers)


def _serve(
    path: Path,
    cache_control: str,
    media_type: str | None = None,
    extra: dict[str, str] | None = None,
) -> Response:
    headers = {"Cache-Control": cache_control, **(extra or {})}
    return FileResponse(path, media_type=media_type, headers=headers)


def _public_file(name: str, cache_control: str) -> Callable[[Request], Any]:
    async def endpoint(request: Request) -> Response:
        path = Path(PUBLIC_DIR, name)
        if not path.is_file():
            return _not_found(cache_control)
        return _serve(path, cache_control)

    return endpoint


def _dev_static(request: Request) -> Response:
    found = _existing_file(PUBLIC_DIR, request.path_params["rel"])
    if found is None:
        return _not_found(_NO_STORE)
    return _serve(found, _NO_STORE)


def _prod_static(cache_static: Path) -> Callable[[Request], Any]:
    async def endpoint(request: Request) -> Response:
        rel = request.path_params["rel"]
        if accepts_gzip(request.headers):
            compressed = _existing_file(cache_static, rel + ".gz")
            if compressed is not None:
                return _serve(
                    compressed,
                    _IMMUTABLE,
                    static_content_type(_ext(rel)),
                    {"Content-Encoding": "gzip", "Vary": "Accept-Encoding"},
                )
        cached = _existing_file(cache_static, rel)
        if cached is not None:
            return _serve(cached, _IMMUTABLE)
        public = _existing_file(PUBLIC_DIR, rel)
        if public is not None:
            return _serve(public, _IMMUTABLE, _PUBLIC_TYPES.get(_ext(rel)))
        return _not_found()

    return endpoint


async def _dev_static_endpoint(request: Request) -> Response:
    return _dev_static(request)


def build_app(cfg: RuntimeConfig) -> Starlette:
    """Build the ASGI application for the project in the current directory."""
    config = load_config(DEFAULT_CONFIG_FILE)
    config.cache_enabled = cfg.enable_cache
    dev = cfg.env == "dev"

    if dev:
        routes: list[Any] = [
            HttpRoute("/static/{rel:path}", _dev_static_endpoint),
            HttpRoute("/favicon.ico", _public_file("favicon.ico", _NO_STORE)),
            HttpRoute("/robots.txt", _public_file("robots.txt", _NO_STORE)),
        ]
        reloader = LiveReloader()
        routes.append(WebSocketRoute(RELOAD_PATH, reloader.handler))
        ctx = RuntimeContext(
            env=cfg.env, enable_watch=True, on_reload=reloader.broadcast_reload
        )
    else:
        routes = [
            HttpRoute(
                "/static/{rel:path}", _prod_static(Path(config.output_dir, "static"))
            ),
            HttpRoute("/favicon.ico", _public_file("favicon.ico", _IMMUTABLE)),
            HttpRoute("/robots.txt", _public_file("robots.txt", _IMMUTABLE)),
        ]
        ctx = RuntimeContext(env=cfg.env, enable_watch=False, on_reload=None)

    routes.append(HttpRoute("/{path:path}", Router(config, ctx)))
    return Starlette(routes=routes)


def start(cfg: RuntimeConfig | None = None) -> None:
    """Serve the project in the current directory until interrupted."""
    cfg = cfg or RuntimeConfig()
    print("Starting Barry in", cfg.env, "mode...")
    app = build_app(cfg)
    print(f"✅ Barry running at http://localhost:{cfg.port}")
    uvicorn.run(app, host="0.0.0.0", port=cfg.port)