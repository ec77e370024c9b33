"""Subprocess helpers and the up-front environment checks."""
import json
import os
import shutil
import subprocess
from typing import Iterable, Optional

from oidc_setup.config import CODESPACES_ISSUE_URL, REQUIRED_TOOLS
from oidc_setup.errors import CommandError, MissingDependencyError, UnsupportedEnvironmentError


def run_command(cmd: list, input_text: Optional[str] = None, check: bool = True,
                capture_output: bool = True) -> subprocess.CompletedProcess:
    """Run a command and return the completed process.

    Raises CommandError when check is set and the command exits non-zero.
    With capture_output=False the command is attached to the terminal (used for
    interactive logins).
    """
    try:
        result = subprocess.run(
            cmd,
            input=input_text,
            capture_output=capture_output,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        raise MissingDependencyError(cmd[0]) from e

    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr or "", result.stdout or "")
    return result


def run_json(cmd: list, runner=run_command):
    """Run a command that prints JSON and return the parsed value."""
    output = (runner(cmd).stdout or "").strip()
    if not output:
        return None
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise CommandError(cmd, 0, f"Unexpected non-JSON output: {output[:200]}") from e


def require_tools(tools: Iterable[str] = REQUIRED_TOOLS, which=shutil.which) -> None:
    """Fail on the first tool that is not on PATH."""
    for tool in tools:
        if which(tool) is None:
            raise MissingDependencyError(tool)


def check_sandbox(environ=None) -> None:
    """Refuse to run inside GitHub Codespaces."""
    environ = os.environ if environ is None else environ
    if environ.get("CODESPACES", "false").strip().lower() == "true":
        raise UnsupportedEnvironmentError(
            "This tool doesn't work in GitHub Codespaces: role assignments created "
            f"there do not propagate reliably. See {CODESPACES_ISSUE_URL} for updates."
        )
