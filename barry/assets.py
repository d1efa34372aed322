"""Asset minification, cache-busting and template helper functions."""

from __future__ import annotations

import contextlib
import functools
import gzip
import hashlib
import re
from pathlib import Path
from typing import Any, Callable

_STATIC_PREFIX = "/static/"


class _SafeHTML(str):
    """A string that templates render without escaping."""

    def __html__(self) -> str:
        return str(self)


def _scan_string(source: str, start: int, allow_newline: bool = False) -> int:
    quote = source[start]
    i = start + 1
    n = len(source)
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and not allow_newline:
            break
        i += 1
    raise ValueError(f"unterminated string starting at offset {start}")


_CSS_TIGHT = set("{};,>:")


def minify_css(source: str) -> str:
    """Strip comments and redundant whitespace from a stylesheet."""
    out: list[str] = []
    pending_space = False
    depth = 0
    i = 0
    n = len(source)

    def emit(token: str) -> None:
        nonlocal pending_space
        if pending_space and out and out[-1][-1] not in _CSS_TIGHT:
            out.append(" ")
        pending_space = False
        out.append(token)

    while i < n:
        ch = source[i]
        if ch.isspace():
            pending_space = True
            i += 1
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            if end == -1:
                raise ValueError(f"unterminated comment at offset {i}")
            pending_space = True
            i = end + 2
        elif ch in "\"'":
            j = _scan_string(source, i)
            emit(source[i:j])
            i = j
        elif ch in "{};,>" or (ch == ":" and depth > 0):
            pending_space = False
            if ch == "}" and out and out[-1] == ";":
                out.pop()
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth = max(0, depth - 1)
            out.append(ch)
            i += 1
        else:
            emit(ch)
            i += 1
    return "".join(out)


_REGEX_PREFIX = set("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORDS = frozenset(
    {
        "return", "typeof", "case", "do", "else", "in", "instanceof",
        "new", "delete", "void", "throw", "yield", "await",
    }
)
_NL_AFTER = set("{[(,;=:<>!&|?*%^~.")
_NL_BEFORE = set(")]},;:=?<>&|*%^.")
_TRAILING_WORD = re.compile(r"[A-Za-z_$][\w$]*$")


def _is_ident(ch: str) -> bool:
    return ch.isalnum() or ch in "_$\\" or ord(ch) > 127


def _needs_space(a: str, b: str) -> bool:
    return (
        (_is_ident(a) and _is_ident(b))
        or (a in "+-" and b in "+-")
        or (a == "/" and b == "/")
        or (a.isdigit() and b == ".")
    )


def _regex_allowed(out: list[str]) -> bool:
    if not out:
        return True
    last = out[-1][-1]
    if last in _REGEX_PREFIX:
        return True
    if _is_ident(last):
        word = _TRAILING_WORD.search("".join(out[-16:]))
        return bool(word) and word.group() in _REGEX_KEYWORDS
    return False


def _scan_regex(source: str, start: int) -> int:
    i = start + 1
    n = len(source)
    in_class = False
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            break
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            while i < n and source[i].isalnum():
                i += 1
            return i
        i += 1
    raise ValueError(f"unterminated regular expression at offset {start}")


def _separator(pending: str, skipped: str) -> str:
    """Return the separator owed after skipping *skipped* text."""
    return "\n" if "\n" in skipped or pending == "\n" else " "


def minify_js(source: str) -> str:
    """Strip comments and redundant whitespace from a script."""
    out: list[str] = []
    pending = ""
    i = 0
    n = len(source)

    def emit(token: str) -> None:
        nonlocal pending
        if pending and out:
            a, b = out[-1][-1], token[0]
            if pending == "\n" and not (a in _NL_AFTER or b in _NL_BEFORE):
                out.append("\n")
            elif _needs_space(a, b):
                out.append(" ")
        pending = ""
        out.append(token)

    while i < n:
        ch = source[i]
        if ch.isspace():
            j = i
            while j < n and source[j].isspace():
                j += 1
            pending = _separator(pending, source[i:j])
            i = j
        elif source.startswith("//", i):
            j = source.find("\n", i)
            i = n if j == -1 else j
            pending = _separator(pending, "\n")
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            if end == -1:
                raise ValueError(f"unterminated comment at offset {i}")
            pending = _separator(pending, source[i:end + 2])
            i = end + 2
        elif ch in "'\"`":
            j = _scan_string(source, i, allow_newline=ch == "`")
            emit(source[i:j])
            i = j
        elif ch == "/" and _regex_allowed(out):
            j = _scan_regex(source, i)
            emit(source[i:j])
            i = j
        else:
            emit(ch)
            i += 1
    return "".join(out)


_MINIFIERS: dict[str, Callable[[str], str]] = {".css": minify_css, ".js": minify_js}


def _split_ext(filename: str) -> tuple[str, str]:
    dot = filename.rfind(".")
    if dot == -1:
        return filename, ""
    return filename[:dot], filename[dot:]


def _short_hash(content: bytes) -> str:
    return hashlib.md5(content).hexdigest()[:6]


def minify_asset(env: str, path: str, cache_dir: str | Path) -> str:
    """Minify a CSS or JS asset into the cache and return its versioned URL.

    Outside production, for other file types, for already minified files
    and whenever the source cannot be read or minified, *path* is returned
    unchanged.
    """
    if env != "prod":
        return path
    name, ext = _split_ext(path.rsplit("/", 1)[-1])
    minifier = _MINIFIERS.get(ext)
    if minifier is None or ".min" in name:
        return path

    src = Path("public", path.removeprefix(_STATIC_PREFIX))
    target = Path(cache_dir, "static", f"{name}.min{ext}")
    try:
        minified = minifier(src.read_text(encoding="utf-8")).encode("utf-8")
    except (OSError, UnicodeDecodeError, ValueError):
        return path

    with contextlib.suppress(OSError):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(minified)
    with contextlib.suppress(OSError):
        with gzip.open(target.with_name(target.name + ".gz"), "wb") as gz:
            gz.write(minified)

    return f"{_STATIC_PREFIX}{name}.min{ext}?v={_short_hash(minified)}"


def versioned(path: str, cache_dir: str | Path) -> str:
    """Append a content hash to a ``/static/`` URL for cache-busting."""
    if not path.startswith(_STATIC_PREFIX):
        return path
    rel = path[len(_STATIC_PREFIX):]
    for candidate in (Path("public", rel), Path(cache_dir, "static", rel)):
        try:
            content = candidate.read_bytes()
        except OSError:
            continue
        return f"{_STATIC_PREFIX}{rel}?v={_short_hash(content)}"
    return path


def props(*args: Any) -> dict[str, Any]:
    """Build a dict from alternating keys and values."""
    if len(args) % 2:
        raise ValueError("props must be called with even number of arguments")
    keys, values = args[::2], args[1::2]
    if not all(isinstance(key, str) for key in keys):
        raise TypeError("props keys must be strings")
    return dict(zip(keys, values))


def safe_html(value: Any) -> Any:
    """Mark *value* as trusted HTML; anything but a string becomes empty."""
    if hasattr(value, "__html__"):
        return value
    if isinstance(value, str):
        return _SafeHTML(value)
    return _SafeHTML("")


def template_funcs(env: str, cache_dir: str | Path) -> dict[str, Callable[..., Any]]:
    """Return the helper functions made available to page templates."""
    return {
        "minify": functools.partial(minify_asset, env, cache_dir=cache_dir),
        "props": props,
        "safeHTML": safe_html,
        "versioned": functools.partial(versioned, cache_dir=cache_dir),
    }