"""On-disk cache of rendered pages."""

from __future__ import annotations

import gzip
from pathlib import Path

from barry.config import Config


def _page_path(config: Config, route: str) -> Path:
    return Path(config.output_dir, route, "index.html")


def get_cached_html(config: Config, route: str) -> bytes | None:
    """Return the cached HTML for *route*, or None if there is none."""
    try:
        return _page_path(config, route).read_bytes()
    except OSError:
        return None


def save_cached_html(config: Config, route_key: str, html: bytes | str) -> None:
    """Write *html* and a gzipped copy into the cache for *route_key*."""
    if isinstance(html, str):
        html = html.encode("utf-8")
    html_path = _page_path(config, route_key)
    html_path.parent.mkdir(parents=True, exist_ok=True)
    html_path.write_bytes(html)
    with gzip.open(html_path.with_name(html_path.name + ".gz"), "wb") as gz:
        gz.write(html)