"""Command-line interface for creating, serving and maintaining projects."""

from __future__ import annotations

import argparse
import os
import shutil
import stat
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import jinja2

from barry.config import DEFAULT_CONFIG_FILE, load_config
from barry.router import COMPONENTS_DIR, PAGE_FILE, ROUTES_DIR, collect_components, find_layout
from barry.server import RuntimeConfig, start

DEFAULT_PORT = 8080

_STARTER_FILES = {
    "main.py": (
        '"""Entry point of the project."""\n'
        "\n"
        "from barry.server import RuntimeConfig, start\n"
        "\n"
        'if __name__ == "__main__":\n'
        '    start(RuntimeConfig(env="dev", enable_cache=False, port=8080))\n'
    ),
    "routes/index.server.py": (
        "def handle_request(request, params):\n"
        "    return {\n"
        '        "Title": "barry.",\n'
        '        "Intro": "A developer-first HTML + Python framework. '
        'No JS. No builds. Just Python.",\n'
        '        "Button": {"Text": "Read the docs"},\n'
        "    }\n"
    ),
}


def copy_starter(target_dir: str | Path) -> list[Path]:
    """Write the starter project into *target_dir*; return the files written."""
    written = []
    for rel, content in _STARTER_FILES.items():
        path = Path(target_dir, rel)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def _route_dirs() -> Iterator[str]:
    for dirpath, dirnames, _ in os.walk(ROUTES_DIR):
        dirnames.sort()
        if os.path.exists(os.path.join(dirpath, PAGE_FILE)):
            yield dirpath


def _parse_error(environment: jinja2.Environment, files: list[str]) -> str | None:
    for file in files:
        try:
            environment.parse(Path(file).read_text(encoding="utf-8"), filename=file)
        except (jinja2.TemplateSyntaxError, OSError, UnicodeDecodeError) as err:
            return f"{file}: {err}"
    return None


def check_templates() -> list[tuple[str, str | None]]:
    """Parse every route page with its layout and components.

    Returns ``(route, error)`` pairs in walk order; *error* is None when
    the route's templates parse cleanly.
    """
    components = collect_components(COMPONENTS_DIR)
    environment = jinja2.Environment()
    results: list[tuple[str, str | None]] = []
    for route_dir in _route_dirs():
        html_path = os.path.join(route_dir, PAGE_FILE)
        try:
            layout = find_layout(Path(html_path).read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            layout = None
        files = ([layout] if layout else []) + [html_path] + components
        results.append(
            (route_dir.removeprefix(ROUTES_DIR), _parse_error(environment, files))
        )
    return results


def clean(route: str | None = None) -> bool:
    """Delete the page cache, or one route's part of it.

    Returns False when there was nothing to delete. Raises
    NotADirectoryError when the target is a file.
    """
    config = load_config(DEFAULT_CONFIG_FILE)
    target = Path(config.output_dir)
    if route is not None:
        target = target / route.removeprefix("/")

    try:
        info = target.stat()
    except FileNotFoundError:
        print("🧼 Nothing to clean:", target)
        return False
    except OSError as err:
        raise OSError(f"failed to access path: {err}") from err

    if not stat.S_ISDIR(info.st_mode):
        raise NotADirectoryError(f"not a directory: {target}")

    print("🧹 Cleaning:", target)
    try:
        shutil.rmtree(target)
    except OSError as err:
        raise OSError(f"failed to clean cache: {err}") from err
    print("✅ Done.")
    return True


def project_info() -> dict[str, Any]:
    """Summarise the configuration, routes, components and cached pages."""
    config = load_config(DEFAULT_CONFIG_FILE)
    return {
        "output_dir": config.output_dir,
        "cache_enabled": config.cache_enabled,
        "debug_headers": config.debug_headers,
        "routes": sum(1 for _ in _route_dirs()),
        "components": len(collect_components(COMPONENTS_DIR)),
        "cached_pages": len(collect_components(config.output_dir)),
    }


def _flag(value: bool) -> str:
    return str(value).lower()


def _cmd_init(args: argparse.Namespace) -> None:
    target = os.getcwd()
    print("🚀 Creating Barry project in:", target)
    try:
        copy_starter(target)
    except OSError as err:
        raise OSError(f"failed to create project: {err}") from err
    print("✅ Project created successfully.")
    print("▶  Run: barry dev")


def _cmd_dev(args: argparse.Namespace) -> None:
    start(RuntimeConfig(env="dev", enable_cache=False, port=DEFAULT_PORT))


def _cmd_prod(args: argparse.Namespace) -> None:
    start(RuntimeConfig(env="prod", enable_cache=True, port=DEFAULT_PORT))


def _cmd_clean(args: argparse.Namespace) -> None:
    clean(args.route)


def _cmd_check(args: argparse.Namespace) -> None:
    failed = False
    for route, error in check_templates():
        if error:
            failed = True
            print(f"❌ {route} → {error}")
        else:
            print(f"✅ {route}")
    if failed:
        raise RuntimeError("some templates failed to compile")
    print("✅ All templates validated successfully.")


def _cmd_info(args: argparse.Namespace) -> None:
    info = project_info()
    print("📁 Output Directory:", info["output_dir"])
    print("🔁 Cache Enabled:", _flag(info["cache_enabled"]))
    print("🔁 Debug Headers Enabled:", _flag(info["debug_headers"]))
    print()
    print("🗂️  Routes Found:", info["routes"])
    print("📦 Components Found:", info["components"])
    print("💾 Cached Pages:", info["cached_pages"])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="barry", description="A dynamic HTML framework")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser(
        "init", help="Create a new Barry project from the default starter"
    ).set_defaults(handler=_cmd_init)
    commands.add_parser(
        "dev", help="Start Barry in dev mode (no caching, live reload)"
    ).set_defaults(handler=_cmd_dev)
    commands.add_parser(
        "prod", help="Start Barry in production mode (caching on by default)"
    ).set_defaults(handler=_cmd_prod)
    clean_parser = commands.add_parser(
        "clean",
        help="Delete cached HTML from the output directory "
        "(default: outputDir in barry.config.yml)",
    )
    clean_parser.add_argument("route", nargs="?", default=None)
    clean_parser.set_defaults(handler=_cmd_clean)
    commands.add_parser(
        "check", help="Validate templates, components, and layouts"
    ).set_defaults(handler=_cmd_check)
    commands.add_parser(
        "info", help="Print project structure and cache summary"
    ).set_defaults(handler=_cmd_info)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    try:
        args.handler(args)
    except (OSError, RuntimeError) as err:
        print(f"barry: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())