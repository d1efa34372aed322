# barry

A small framework for dynamic HTML sites. The folders of a project decide
which URLs exist. Pages are Jinja2 templates. In production, rendered pages
can be cached on disk as plain and gzipped HTML. In development, the browser
reloads itself whenever a file changes.

## Install

```
pip install barry
```

For the test suite, install the `test` extra: `pip install "barry[test]"`.

## Project layout

Commands are run from the project directory. A project looks like this:

```
barry.config.yml          optional
routes/
  index.html              the page at /
  index.server.py         optional data for that page
  blog/_slug/index.html   matches /blog/<anything>
  _error/404.html         optional error page
components/               any .html files
public/                   files served under /static/
```

- A route is any directory under `routes/` that holds an `index.html`. A
  directory whose name starts with `_` is a URL parameter. For example,
  `routes/blog/_slug` matches `/blog/hello` and sets `slug` to `"hello"`.
  Routes are tried in sorted directory order, and the first match wins.
- A page may name a layout on a line of its own:
  `<!-- layout: components/layouts/layout.html -->`.
  If the page does not contain `{% extends %}` itself, it is rendered as if it
  extended that layout. So the page should fill the layout's `{% block %}`s.
  Template paths are relative to the project directory.
- Every `.html` file under `components/` is compiled together with the page.
  A broken component therefore makes the page fail. Pages can
  `{% include %}` or `{% import %}` components by their path.
- `index.server.py` sits next to a page and defines
  `handle_request(request, params)`. It runs in a fresh Python interpreter.
  `request` is `None`, and `params` holds the URL parameters. It must return
  a JSON-serialisable dict, and that dict becomes the template context. If it
  raises `barry.errors.NotFoundError`, the 404 page is shown. Any other
  exception gives a 500 response with the text `Server logic error: ...`.
- For error pages, `routes/_error/<status>.html` is used first. If it is
  missing, `routes/_error/index.html` is used. If neither renders, a plain
  `404 - Page not found` is sent. Error templates receive `Title`,
  `StatusCode`, `Message`, `Path` and `Description`.

## Configuration

`barry.config.yml`:

```yaml
outputDir: ./cache     # cached pages and minified assets (default ./cache)
cache: true            # shown by `barry info`
debugHeaders: false    # add X-Barry-Cache: HIT/MISS to page responses
```

If the file is missing, the defaults are used. Values of the wrong type are
ignored. The `cache` setting does not switch the cache on or off:
`barry dev` always serves without the page cache, and `barry prod` always
serves with it.

## Commands

| Command | What it does |
| --- | --- |
| `barry init` | Writes a starter `main.py` and `routes/index.server.py` into the current directory. |
| `barry dev` | Serves on port 8080 without the page cache. Static files are sent with `Cache-Control: no-store`. It watches `routes/`, `components/` and `public/`, and reloads connected browsers through the `/__barry_reload` WebSocket. |
| `barry prod` | Serves on port 8080 with the page cache. Pages are saved to `outputDir` and sent gzipped when the client accepts it. Static files get long-lived immutable cache headers. |
| `barry check` | Parses every route page with its layout and all components, and prints ✅ or ❌ for each. It exits with status 1 if any fail. |
| `barry info` | Prints the configuration and the number of routes, components and cached pages. |
| `barry clean [route]` | Deletes `outputDir`, or only the part of it for one route. |

Static files: in development, `/static/<file>` is served from `public/`. In
production, the server first tries `outputDir/static/<file>.gz` (if the client
accepts gzip), then `outputDir/static/<file>`, then `public/<file>`.
`/favicon.ico` and `/robots.txt` are always served from `public/`.

## Template helpers

These functions are available in every template:

- `minify("/static/app.css")`: only in production, and only for `.css` and
  `.js` files. It writes `name.min.css` and its `.gz` copy to
  `outputDir/static/` and returns `/static/name.min.css?v=<hash>`. In all
  other cases it returns the path unchanged.
- `versioned("/static/logo.png")`: appends `?v=` and a six-character MD5
  hash of the file, looked up in `public/` first and then in
  `outputDir/static/`.
- `props("key", value, ...)`: builds a dict from alternating keys and values.
- `safeHTML(text)`: marks a string as trusted HTML. Anything that is not a
  string becomes empty.

The minifiers are also available directly as `barry.assets.minify_css` and
`barry.assets.minify_js`.

## Use from Python

```python
from barry.server import RuntimeConfig, build_app, start

start(RuntimeConfig(env="dev", enable_cache=False, port=8080))

app = build_app(RuntimeConfig(env="prod", enable_cache=True))  # ASGI app
```

`barry.router.Router` is the ASGI application that serves the pages. It can
be mounted on its own.

## What it does not do

- `barry init` does not create an `index.html`, a config file, components or
  a `public/` folder. The project cannot serve `/` until you add
  `routes/index.html`.
- The port is fixed at 8080 for `barry dev` and `barry prod`. To use a
  different port, call `start` with your own `RuntimeConfig`.
- The CSS and JS minifiers only strip comments and whitespace. They do not
  rename or rewrite code.