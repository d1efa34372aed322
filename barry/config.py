"""Loading of the project configuration file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = "barry.config.yml"
_DEFAULT_OUTPUT_DIR = "./cache"


@dataclass
class Config:
    """Project settings read from ``barry.config.yml``."""

    output_dir: str = _DEFAULT_OUTPUT_DIR
    cache_enabled: bool = False
    debug_headers: bool = False


def _as_bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def load_config(path: str | Path = DEFAULT_CONFIG_FILE) -> Config:
    """Read the YAML config at *path*, falling back to defaults.

    A missing or unreadable file yields the default configuration; values
    of the wrong type are ignored, and an empty output directory becomes
    ``./cache``.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return Config()

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        data = None

    if not isinstance(data, dict):
        data = {}

    output_dir = _as_str(data.get("outputDir")) or _DEFAULT_OUTPUT_DIR
    return Config(
        output_dir=output_dir,
        cache_enabled=_as_bool(data.get("cache")),
        debug_headers=_as_bool(data.get("debugHeaders")),
    )