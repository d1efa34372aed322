import os
import threading
import time
from pathlib import Path

import pytest
from starlette.testclient import TestClient

from barry.config import Config
from barry.router import (
    Router,
    RuntimeContext,
    accepts_gzip,
    collect_components,
    find_layout,
    render_error_page,
    should_log_request,
)

LAYOUT = (
    "<html><body>{% block content %}{% endblock %}</body></html>"
)
LAYOUT_LINE = "<!-- layout: components/layouts/layout.html -->\n"


def write(root: Path, rel: str, text: str) -> None:
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")


@pytest.fixture
def site(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    write(tmp_path, "components/layouts/layout.html", LAYOUT)
    write(
        tmp_path,
        "routes/index.html",
        LAYOUT_LINE + "{% block content %}<h1>home</h1>{% endblock %}",
    )
    write(
        tmp_path,
        "routes/about/index.html",
        LAYOUT_LINE + "{% block content %}<p>about page</p>{% endblock %}",
    )
    write(
        tmp_path,
        "routes/blog/_slug/index.html",
        LAYOUT_LINE + "{% block content %}<p>post {{ slug }}</p>{% endblock %}",
    )
    return tmp_path


def client_for(config, env="prod"):
    return TestClient(Router(config, RuntimeContext(env=env)))


def test_should_log_request():
    assert should_log_request("/about") is True
    assert should_log_request("/.well-known/x") is False
    assert should_log_request("/favicon.ico") is False
    assert should_log_request("/robots.txt") is False


def test_accepts_gzip():
    assert accepts_gzip({"Accept-Encoding": "gzip, deflate"}) is True
    assert accepts_gzip({"accept-encoding": "identity"}) is False
    assert accepts_gzip({}) is False


def test_find_layout():
    content = "\n  <!-- layout: components/layouts/layout.html -->  \n<p>x</p>"
    assert find_layout(content) == "components/layouts/layout.html"
    assert find_layout("<p>no layout</p>") is None


def test_collect_components(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert collect_components() == []
    write(tmp_path, "components/b.html", "b")
    write(tmp_path, "components/a/inner.html", "i")
    write(tmp_path, "components/notes.txt", "t")
    found = collect_components()
    assert found == [
        os.path.join("components", "a", "inner.html"),
        os.path.join("components", "b.html"),
    ]


def test_load_routes_and_match(site):
    router = Router(Config(), RuntimeContext(env="prod"))
    about = router.match("about")
    assert about is not None
    assert about[0].html_path == os.path.join("routes", "about", "index.html")
    assert about[1] == {}
    post = router.match("/blog/hello/")
    assert post is not None
    assert post[1] == {"slug": "hello"}
    assert post[0].param_keys == ["slug"]
    assert router.match("blog/a/b") is None
    assert router.match("missing") is None


def test_serves_root_and_routes(site):
    client = client_for(Config())
    home = client.get("/")
    assert home.status_code == 200
    assert home.headers["content-type"] == "text/html"
    assert "<h1>home</h1>" in home.text
    assert home.text.startswith("<html><body>")
    assert "<p>post hello</p>" not in client.get("/blog/other").text
    assert "about page" in client.get("/about").text


def test_unknown_route_plain_fallback(site):
    response = client_for(Config()).get("/nowhere/at/all")
    assert response.status_code == 404
    assert response.text == "404 - Page not found"


def test_custom_error_page(site):
    write(
        site,
        "routes/_error/404.html",
        "<p>{{ StatusCode }}|{{ Message }}|{{ Path }}</p>",
    )
    response = client_for(Config()).get("/nowhere/at/all")
    assert response.status_code == 404
    assert "404|Page not found|/nowhere/at/all" in response.text


def test_render_error_page_default_template(site):
    write(site, "routes/_error/index.html", "<p>{{ Title }}</p>")
    response = render_error_page(Config(), "prod", 500, "Boom", "/x")
    assert response.status_code == 500
    assert b"500 - Boom" in response.body


def test_render_error_page_without_templates(site):
    response = render_error_page(Config(), "prod", 503, "Busy", "/x")
    assert response.status_code == 503
    assert response.body == b"503 - Busy"


def test_dev_mode_injects_live_reload(site):
    text = client_for(Config(), env="dev").get("/about").text
    assert "/__barry_reload" in text
    assert text.count("</body>") == 1
    assert text.index("/__barry_reload") < text.index("</body>")


def test_prod_mode_has_no_live_reload(site):
    assert "/__barry_reload" not in client_for(Config()).get("/about").text


def test_template_helpers_and_escaping(site):
    write(
        site,
        "routes/helpers/index.html",
        "{{ props('a', 7)['a'] }}{{ safeHTML('<b>raw</b>') }}{{ '<i>esc</i>' }}",
    )
    text = client_for(Config()).get("/helpers").text
    assert "7" in text
    assert "<b>raw</b>" in text
    assert "&lt;i&gt;esc&lt;/i&gt;" in text


def test_components_are_includable(site):
    write(site, "components/button.html", "<button>{{ label }}</button>")
    write(
        site,
        "routes/btn/index.html",
        "{% set label = 'go' %}{% include 'components/button.html' %}",
    )
    assert "<button>go</button>" in client_for(Config()).get("/btn").text


def test_template_syntax_error(site):
    write(site, "routes/broken/index.html", "{% if %}")
    response = client_for(Config()).get("/broken")
    assert response.status_code == 500
    assert response.text.startswith("Template error:")


def test_broken_component_fails_every_page(site):
    write(site, "components/bad.html", "{% for %}")
    response = client_for(Config()).get("/about")
    assert response.status_code == 500
    assert response.text.startswith("Template error:")


def test_template_execution_error(site):
    write(site, "routes/odd/index.html", "{{ props('a') }}")
    response = client_for(Config()).get("/odd")
    assert response.status_code == 500
    assert response.text.startswith("Template execution error:")


def test_cache_miss_then_hit(site):
    config = Config(output_dir="./cache", cache_enabled=True, debug_headers=True)
    client = client_for(config)
    first = client.get("/about")
    assert first.headers["x-barry-cache"] == "MISS"
    assert (site / "cache" / "about" / "index.html").read_text() == first.text
    assert (site / "cache" / "about" / "index.html.gz").exists()

    write(site, "routes/about/index.html", "<p>changed</p>")
    gzipped = client.get("/about")
    assert gzipped.headers["x-barry-cache"] == "HIT"
    assert gzipped.headers["content-encoding"] == "gzip"
    assert gzipped.text == first.text

    plain = client.get("/about", headers={"Accept-Encoding": "identity"})
    assert plain.headers["x-barry-cache"] == "HIT"
    assert "content-encoding" not in plain.headers
    assert plain.text == first.text


def test_cache_disabled_renders_fresh(site):
    client = client_for(Config())
    client.get("/about")
    write(site, "routes/about/index.html", "<p>changed</p>")
    assert "<p>changed</p>" in client.get("/about").text
    assert not (site / "cache").exists()


def test_server_file_supplies_data(site):
    write(
        site,
        "routes/blog/_slug/index.server.py",
        "def handle_request(request, params):\n"
        "    return {'slug': params['slug'].upper()}\n",
    )
    text = client_for(Config()).get("/blog/hello").text
    assert "<p>post HELLO</p>" in text


def test_server_file_not_found(site):
    write(
        site,
        "routes/about/index.server.py",
        "from barry.errors import NotFoundError\n"
        "def handle_request(request, params):\n"
        "    raise NotFoundError()\n",
    )
    response = client_for(Config()).get("/about")
    assert response.status_code == 404
    assert "Page not found" in response.text


def test_server_file_failure(site):
    write(
        site,
        "routes/about/index.server.py",
        "def handle_request(request, params):\n"
        "    raise RuntimeError('kaput')\n",
    )
    response = client_for(Config()).get("/about")
    assert response.status_code == 500
    assert response.text.startswith("Server logic error:")
    assert "kaput" in response.text


def test_watch_reloads_routes(site):
    fired = threading.Event()
    router = Router(
        Config(), RuntimeContext(env="dev", on_reload=fired.set)
    )
    assert router.match("fresh") is None
    observer = router.watch()
    try:
        time.sleep(0.3)
        write(site, "routes/fresh/index.html", "<p>fresh</p>")
        deadline = time.monotonic() + 10
        while router.match("fresh") is None and time.monotonic() < deadline:
            time.sleep(0.1)
            (site / "routes" / "fresh" / "index.html").touch()
        assert fired.wait(5)
        assert router.match("fresh") is not None
    finally:
        observer.stop()
        observer.join()