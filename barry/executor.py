"""Running a route's server-side logic in a separate interpreter."""

from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any

from barry.errors import NotFoundError

_ERROR_PREFIX = "barry-error:"
_PACKAGE_PARENT = Path(__file__).resolve().parent.parent
_HANDLER_MODULE = "_barry_route_handler"

_RUNNER = f"""\
import json
import sys

try:
    from {_HANDLER_MODULE} import handle_request

    result = handle_request(None, json.loads(sys.argv[1]))
    payload = json.dumps(result)
except Exception as err:
    message = "{NotFoundError()}" if str(err) == "{NotFoundError()}" else err
    print(f"{_ERROR_PREFIX} {{message}}", file=sys.stderr)
    sys.exit(1)

sys.stdout.write(payload + "\\n")
"""


def _child_env() -> dict[str, str]:
    env = dict(os.environ)
    parts = [str(_PACKAGE_PARENT), env.get("PYTHONPATH", "")]
    env["PYTHONPATH"] = os.pathsep.join(part for part in parts if part)
    return env


def execute_server_file(
    file_path: str | Path,
    params: dict[str, str] | None,
    dev_mode: bool = False,
) -> dict[str, Any]:
    """Run ``handle_request`` from *file_path* and return the data it produced.

    The file is executed in a fresh interpreter by a generated runner script.
    Raises NotFoundError when the handler reports a missing page,
    RuntimeError when it fails, and ValueError when its output is not a
    JSON object.
    """
    path = Path(file_path).resolve()
    with tempfile.TemporaryDirectory(prefix="barry-") as tmp:
        tmp_dir = Path(tmp)
        shutil.copyfile(path, tmp_dir / f"{_HANDLER_MODULE}.py")
        runner = tmp_dir / "main.py"
        runner.write_text(_RUNNER, encoding="utf-8")
        proc = subprocess.run(
            [sys.executable, str(runner), json.dumps(dict(params or {}))],
            capture_output=True,
            text=True,
            env=_child_env(),
            cwd=os.getcwd(),
        )

    if dev_mode and proc.stderr:
        sys.stderr.write(proc.stderr)

    if proc.returncode != 0:
        if f"{_ERROR_PREFIX} {NotFoundError()}" in proc.stderr:
            raise NotFoundError()
        raise RuntimeError(
            f"exec error: exit status {proc.returncode}\nstderr: {proc.stderr}"
        )

    try:
        result = json.loads(proc.stdout)
    except json.JSONDecodeError as err:
        raise ValueError(f"json decode error: {err}") from err
    if not isinstance(result, dict):
        raise ValueError("json decode error: expected a JSON object")
    return result