import gzip

import pytest

from barry.cache import get_cached_html, save_cached_html
from barry.config import Config


@pytest.fixture
def config(tmp_path):
    return Config(output_dir=str(tmp_path / "cache"), cache_enabled=True)


def test_round_trip(config):
    save_cached_html(config, "blog/post", b"<html>hi</html>")
    assert get_cached_html(config, "blog/post") == b"<html>hi</html>"


def test_missing_route_returns_none(config):
    assert get_cached_html(config, "nowhere") is None


def test_gzip_copy_matches(config, tmp_path):
    save_cached_html(config, "about", b"<p>about</p>")
    cached = get_cached_html(config, "about")
    gz_path = tmp_path / "cache" / "about" / "index.html.gz"
    assert cached == b"<p>about</p>"
    assert gzip.decompress(gz_path.read_bytes()) == cached


def test_root_route_uses_output_dir(config, tmp_path):
    save_cached_html(config, "", b"root")
    assert (tmp_path / "cache" / "index.html").read_bytes() == b"root"
    assert get_cached_html(config, "") == b"root"


def test_string_html_is_encoded(config):
    save_cached_html(config, "text", "héllo")
    assert get_cached_html(config, "text") == "héllo".encode("utf-8")


def test_overwrite_replaces_content(config):
    save_cached_html(config, "page", b"first")
    save_cached_html(config, "page", b"second")
    assert get_cached_html(config, "page") == b"second"